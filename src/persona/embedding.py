from __future__ import annotations

import hashlib
import logging
from threading import Lock
from typing import Any, Dict, List, Protocol, Sequence

import numpy as np

from .errors import EmbeddingError
from .text import normalize_text

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    dimension: int

    def embed(self, text: str) -> Sequence[float]:
        ...


class TransformersEmbedder:
    """Sentence embeddings from a Hugging Face encoder.

    Mean-pools the last hidden state over the attention mask and L2-normalizes
    the result. The model is loaded lazily on first use so that importing this
    module stays cheap.
    """

    def __init__(
        self,
        model_id: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimension: int = 384,
        device: str = "cpu",
        max_length: int = 256,
    ) -> None:
        self.model_id = model_id
        self.dimension = dimension
        self.device = device
        self.max_length = max_length
        self._model = None
        self._tokenizer = None
        self._lock = Lock()

    def _ensure_model(self) -> None:
        if self._model is not None and self._tokenizer is not None:
            return
        with self._lock:
            if self._model is not None and self._tokenizer is not None:
                return
            from transformers import AutoModel, AutoTokenizer  # type: ignore

            tokenizer = AutoTokenizer.from_pretrained(self.model_id)
            model = AutoModel.from_pretrained(self.model_id)
            model.to(self.device)
            model.eval()
            self._tokenizer = tokenizer
            self._model = model
            logger.info("Embedding model loaded: %s on %s", self.model_id, self.device)

    def embed(self, text: str) -> List[float]:
        try:
            self._ensure_model()
            import torch

            encoded = self._tokenizer(
                [text],
                padding=True,
                truncation=True,
                max_length=self.max_length,
                return_tensors="pt",
            ).to(self.device)
            with torch.no_grad():
                output = self._model(**encoded)
            mask = encoded["attention_mask"].unsqueeze(-1).to(output.last_hidden_state.dtype)
            summed = (output.last_hidden_state * mask).sum(dim=1)
            counts = mask.sum(dim=1).clamp(min=1e-9)
            pooled = torch.nn.functional.normalize(summed / counts, p=2, dim=1)
            vector = pooled[0].cpu().tolist()
        except Exception as exc:
            raise EmbeddingError(f"Embedding model {self.model_id} failed: {exc}") from exc

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Embedding model {self.model_id} returned dimension {len(vector)}, expected {self.dimension}"
            )
        return vector


class HashEmbedder:
    """Deterministic signed token hashing into a fixed number of buckets.

    Needs no model download. Only lexical overlap is captured, so thresholds
    tuned for a neural encoder will not transfer.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed(self, text: str) -> List[float]:
        values = np.zeros(self.dimension, dtype=np.float64)
        for token in normalize_text(text).split():
            digest = hashlib.sha256(token.encode("utf-8", errors="ignore")).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dimension
            values[idx] += 1.0 if digest[4] % 2 == 0 else -1.0
        norm = np.linalg.norm(values)
        if norm > 0:
            values /= norm
        return values.tolist()


def build_embedder(config: Dict[str, Any]) -> EmbeddingProvider:
    emb_cfg = config.get("embedding", {})
    backend = (emb_cfg.get("backend") or "transformers").lower()
    if backend == "hash":
        return HashEmbedder(dimension=int(emb_cfg.get("dim", 256)))
    if backend == "transformers":
        return TransformersEmbedder(
            model_id=emb_cfg.get("model_id", "sentence-transformers/all-MiniLM-L6-v2"),
            dimension=int(emb_cfg.get("dim", 384)),
            device=emb_cfg.get("device", "cpu"),
        )
    raise ValueError(f"Unsupported embedding backend: {backend}")


def embed_pattern(embedder: EmbeddingProvider, text: str, strip_punctuation: bool = True) -> List[float]:
    """Embed a message or pattern the way knowledge entries are embedded."""
    return list(embedder.embed(normalize_text(text, strip_punctuation=strip_punctuation)))
