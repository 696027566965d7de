from typing import List, Pattern, Tuple

from .loader import KnowledgeBase
from .text import normalize_text, phrase_pattern
from .types import MISS, Hit, KnowledgeEntry, MatchResult


class RuleMatcher:
    """Deterministic lookup of curated answers.

    Exact pattern equality is tried across every entry first, then whole-word
    containment of a trigger phrase. In both passes the earliest entry wins.
    """

    def __init__(self, knowledge: KnowledgeBase, strip_punctuation: bool = True) -> None:
        self.knowledge = knowledge
        self.strip_punctuation = strip_punctuation
        self._phrases: List[Tuple[KnowledgeEntry, Tuple[Pattern[str], ...]]] = [
            (entry, tuple(phrase_pattern(p) for p in entry.patterns)) for entry in knowledge.all_entries()
        ]

    def match(self, message: str) -> MatchResult:
        normalized = normalize_text(message, strip_punctuation=self.strip_punctuation)
        if not normalized:
            return MISS

        for entry in self.knowledge.all_entries():
            if normalized in entry.patterns:
                return Hit(entry=entry, confidence=1.0)

        for entry, patterns in self._phrases:
            if any(p.search(normalized) for p in patterns):
                return Hit(entry=entry, confidence=1.0)

        return MISS
