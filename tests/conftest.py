from __future__ import annotations

import asyncio
import json
import math
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest

from persona.loader import KnowledgeBase, load_knowledge
from persona.text import normalize_text

DIM = 3

MORTALITY_ANSWER = "Do not fear what nature makes necessary."
AFRAID_OF_DEATH = "what should I do when afraid of death"


def base_records() -> List[Dict]:
    return [
        {"id": "greeting", "patterns": ["Hello"], "answer": "Greetings, friend.", "embedding": [0.0, 1.0, 0.0]},
        {"id": "mortality", "patterns": ["fear of death"], "answer": MORTALITY_ANSWER, "embedding": [1.0, 0.0, 0.0]},
        {"id": "control", "pattern": "What can I control?", "answer": "Only your judgments.", "embedding": [0.0, 0.0, 1.0]},
    ]


def write_jsonl(path: Path, records: Sequence[object]) -> Path:
    with path.open("w", encoding="utf-8") as f:
        for record in records:
            f.write(record if isinstance(record, str) else json.dumps(record))
            f.write("\n")
    return path


class TableEmbedder:
    """Returns canned vectors keyed by normalized text; unknown text embeds to zeros."""

    def __init__(self, table: Dict[str, Sequence[float]], dimension: int = DIM) -> None:
        self.dimension = dimension
        self.table = {normalize_text(k): list(v) for k, v in table.items()}
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.table.get(normalize_text(text), [0.0] * self.dimension))


class FailingEmbedder:
    dimension = DIM

    def __init__(self, exc: Exception = None) -> None:
        self.exc = exc or RuntimeError("embedding service unreachable")

    def embed(self, text: str) -> List[float]:
        raise self.exc


class StubGenerator:
    def __init__(self, text: Optional[str] = None, exc: Optional[Exception] = None, delay: float = 0.0) -> None:
        self.text = text
        self.exc = exc
        self.delay = delay
        self.calls: List[str] = []

    async def generate(self, message, context=None) -> str:
        self.calls.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.text


@pytest.fixture
def knowledge_path(tmp_path) -> Path:
    return write_jsonl(tmp_path / "knowledge.jsonl", base_records())


@pytest.fixture
def knowledge(knowledge_path) -> KnowledgeBase:
    return load_knowledge(str(knowledge_path), DIM)


@pytest.fixture
def embedder() -> TableEmbedder:
    off_axis = math.sqrt(1 - 0.81 ** 2)
    return TableEmbedder(
        {
            AFRAID_OF_DEATH: [0.81, 0.0, off_axis],
            "tell me about the weather in rome": [0.3, 0.3, 0.3],
        }
    )
