import re
from typing import Pattern

SPACE_RE = re.compile(r"\s+")
PUNCT_RE = re.compile(r"[^\w\s']|_")
CONTROL_TOKEN_RE = re.compile(r"<\|.*?\|>", re.DOTALL)


def normalize_text(text: str, strip_punctuation: bool = True) -> str:
    normalized = text.replace("\u3000", " ").casefold()
    if strip_punctuation:
        normalized = PUNCT_RE.sub(" ", normalized)
    normalized = SPACE_RE.sub(" ", normalized).strip()
    return normalized


def phrase_pattern(phrase: str) -> Pattern[str]:
    """Compile a whole-word matcher for an already normalized phrase."""
    return re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")


def strip_control_tokens(text: str) -> str:
    return CONTROL_TOKEN_RE.sub("", text).strip()
