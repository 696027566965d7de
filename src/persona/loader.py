import json
import logging
import math
from numbers import Real
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import LoadError
from .text import normalize_text
from .types import KnowledgeEntry

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Ordered, read-only collection of curated entries.

    Built once at startup and shared by the matchers. Entry order is load
    order, which the semantic matcher relies on for tie-breaking.
    """

    def __init__(self, entries: Sequence[KnowledgeEntry], dimension: int, validate: bool = True) -> None:
        if dimension <= 0:
            raise LoadError(f"Embedding dimension must be positive, got {dimension}")
        self.dimension = dimension
        # load_knowledge checks line by line and passes validate=False
        if validate:
            seen = set()
            for entry in entries:
                _check_entry(entry, dimension, seen)
                seen.add(entry.id)
        self._entries: Tuple[KnowledgeEntry, ...] = tuple(entries)
        self._by_id: Dict[str, KnowledgeEntry] = {entry.id: entry for entry in self._entries}

        if self._entries:
            matrix = np.vstack([entry.embedding for entry in self._entries])
        else:
            matrix = np.zeros((0, dimension), dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        matrix.setflags(write=False)
        norms.setflags(write=False)
        self._matrix = matrix
        self._norms = norms

    def all_entries(self) -> Tuple[KnowledgeEntry, ...]:
        return self._entries

    def get(self, entry_id: str) -> Optional[KnowledgeEntry]:
        return self._by_id.get(entry_id)

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @property
    def norms(self) -> np.ndarray:
        return self._norms

    def __len__(self) -> int:
        return len(self._entries)


def make_entry(
    entry_id: str,
    patterns: Sequence[str],
    answer: str,
    embedding: Sequence[float],
    strip_punctuation: bool = True,
) -> KnowledgeEntry:
    normalized: List[str] = []
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise LoadError(f"entry {entry_id!r}: pattern must be a string, got {pattern!r}")
        norm = normalize_text(pattern, strip_punctuation=strip_punctuation)
        if norm and norm not in normalized:
            normalized.append(norm)
    vector = _to_vector(embedding)
    vector.setflags(write=False)
    return KnowledgeEntry(id=entry_id, patterns=tuple(normalized), answer=answer, embedding=vector)


def load_knowledge(path: str, dimension: int, strip_punctuation: bool = True) -> KnowledgeBase:
    data_path = Path(path)
    if not data_path.exists():
        raise LoadError(f"Knowledge source not found: {data_path}")

    entries: List[KnowledgeEntry] = []
    seen: Set[str] = set()
    with data_path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise LoadError(f"{data_path}:{line_no}: invalid JSON ({exc.msg})") from exc
            if not isinstance(record, dict):
                raise LoadError(f"{data_path}:{line_no}: expected a JSON object")
            try:
                entry = _entry_from_record(record, strip_punctuation)
                _check_entry(entry, dimension, seen)
            except LoadError as exc:
                raise LoadError(f"{data_path}:{line_no}: {exc}") from exc
            seen.add(entry.id)
            entries.append(entry)

    knowledge = KnowledgeBase(entries, dimension, validate=False)
    logger.info("Loaded %d knowledge entries from %s (dim=%d)", len(knowledge), data_path, dimension)
    return knowledge


def _entry_from_record(record: Dict[str, Any], strip_punctuation: bool) -> KnowledgeEntry:
    entry_id = record.get("id")
    if not isinstance(entry_id, str) or not entry_id.strip():
        raise LoadError("entry is missing an id")

    patterns = record.get("patterns")
    if patterns is None:
        patterns = [record["pattern"]] if "pattern" in record else []
    elif isinstance(patterns, str):
        patterns = [patterns]
    if not isinstance(patterns, list):
        raise LoadError(f"entry {entry_id!r}: patterns must be a string or a list of strings")

    answer = record.get("answer")
    if not isinstance(answer, str):
        answer = ""
    return make_entry(entry_id, patterns, answer, record.get("embedding"), strip_punctuation)


def _to_vector(embedding: Any) -> np.ndarray:
    if not isinstance(embedding, (list, tuple, np.ndarray)) or len(embedding) == 0:
        raise LoadError("embedding must be a non-empty list of numbers")
    values = []
    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            raise LoadError(f"embedding contains a non-numeric or non-finite value: {value!r}")
        values.append(float(value))
    return np.asarray(values, dtype=np.float64)


def _check_entry(entry: KnowledgeEntry, dimension: int, seen_ids: Set[str]) -> None:
    if entry.id in seen_ids:
        raise LoadError(f"Duplicate knowledge entry id: {entry.id!r}")
    if not entry.answer.strip():
        raise LoadError(f"entry {entry.id!r} has an empty answer")
    if not entry.patterns:
        raise LoadError(f"entry {entry.id!r} has no usable pattern")
    if entry.embedding.ndim != 1 or entry.embedding.shape[0] != dimension:
        raise LoadError(
            f"entry {entry.id!r} embedding has dimension {entry.embedding.shape[-1]}, expected {dimension}"
        )
