import logging
from typing import Sequence

import numpy as np

from .embedding import EmbeddingProvider
from .errors import EmbeddingError
from .loader import KnowledgeBase
from .text import normalize_text
from .types import MISS, Hit, MatchResult

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def similarity_scores(knowledge: KnowledgeBase, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against every entry, in load order."""
    query_norm = float(np.linalg.norm(query))
    norms = knowledge.norms
    scores = np.zeros(len(knowledge), dtype=np.float64)
    if query_norm == 0.0 or not len(knowledge):
        return scores
    valid = norms > 0
    scores[valid] = (knowledge.matrix[valid] @ query) / (norms[valid] * query_norm)
    return scores


class SemanticMatcher:
    def __init__(
        self,
        knowledge: KnowledgeBase,
        embedder: EmbeddingProvider,
        threshold: float = 0.75,
        strip_punctuation: bool = True,
    ) -> None:
        if not -1.0 <= threshold <= 1.0:
            raise ValueError(f"Similarity threshold must be within [-1, 1], got {threshold}")
        self.knowledge = knowledge
        self.embedder = embedder
        self.threshold = threshold
        self.strip_punctuation = strip_punctuation

    def match(self, message: str) -> MatchResult:
        normalized = normalize_text(message, strip_punctuation=self.strip_punctuation)
        if not normalized or not len(self.knowledge):
            return MISS

        query = self._embed(normalized)
        scores = similarity_scores(self.knowledge, query)
        # argmax returns the first maximum, so ties resolve to load order
        best = int(np.argmax(scores))
        score = float(scores[best])
        entry = self.knowledge.all_entries()[best]
        logger.debug("Best semantic candidate %s (sim=%.3f, threshold=%.3f)", entry.id, score, self.threshold)
        if score >= self.threshold:
            return Hit(entry=entry, confidence=score)
        return MISS

    def _embed(self, text: str) -> np.ndarray:
        try:
            raw = self.embedder.embed(text)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"Embedding provider failed: {exc}") from exc

        try:
            vector = np.asarray(raw, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise EmbeddingError(f"Embedding provider returned a non-numeric vector: {exc}") from exc
        if vector.shape != (self.knowledge.dimension,):
            raise EmbeddingError(
                f"Embedding provider returned shape {vector.shape}, expected ({self.knowledge.dimension},)"
            )
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("Embedding provider returned non-finite values")
        return vector
