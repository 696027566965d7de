from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class Message:
    speaker: str
    text: str


@dataclass(frozen=True)
class ConversationContext:
    prior_turns: Tuple[Message, ...] = ()
    session_id: Optional[str] = None

    @classmethod
    def from_turns(
        cls,
        turns: Optional[Iterable[Union[Message, Dict[str, Any]]]],
        session_id: Optional[str] = None,
    ) -> "ConversationContext":
        messages = []
        for turn in turns or []:
            if isinstance(turn, Message):
                messages.append(turn)
            elif isinstance(turn, dict):
                speaker = turn.get("speaker") or turn.get("role")
                text = turn.get("text")
                if speaker and isinstance(text, str) and text.strip():
                    messages.append(Message(speaker=str(speaker), text=text))
        return cls(prior_turns=tuple(messages), session_id=session_id)


@dataclass(frozen=True, eq=False)
class KnowledgeEntry:
    id: str
    patterns: Tuple[str, ...]
    answer: str
    embedding: np.ndarray = field(repr=False)


class Tier(str, Enum):
    RULE = "rule"
    SEMANTIC = "semantic"
    GENERATIVE = "generative"
    FALLBACK = "fallback"


@dataclass
class ResponseCandidate:
    text: str
    tier: Tier
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "tier": self.tier.value}


@dataclass(frozen=True)
class Hit:
    entry: KnowledgeEntry
    confidence: float


@dataclass(frozen=True)
class Miss:
    pass


MISS = Miss()

MatchResult = Union[Hit, Miss]
