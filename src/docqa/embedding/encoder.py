"""Embedding model management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import numpy as np

from docqa.errors import EmbeddingFailure

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"
DEFAULT_DIMENSION = 768

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    dimension: int

    def embed(self, text: str) -> Sequence[float]: ...


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for passage and query embeddings."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        # Imported here so the rest of the package loads without torch.
        from sentence_transformers import SentenceTransformer

        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded embedding model %s (dimension=%d)", self.config.model_name, self.dimension
        )

    def embed_batch(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-text embedding."""
        return self.embed_batch([text])[0]


def checked_embedding(embedder: Embedder, text: str, dimension: int) -> list[float]:
    """Embed ``text`` and validate the result.

    Raises:
        EmbeddingFailure: if the embedder raises, or the vector does not have
            exactly ``dimension`` finite components.
    """
    try:
        raw = embedder.embed(text)
    except EmbeddingFailure:
        raise
    except Exception as exc:
        raise EmbeddingFailure(f"Embedder failed: {exc}") from exc

    try:
        vector = np.asarray(raw, dtype="float32").reshape(-1)
    except (TypeError, ValueError) as exc:
        raise EmbeddingFailure(f"Embedder returned a non-numeric vector: {exc}") from exc

    if vector.shape[0] != dimension:
        raise EmbeddingFailure(
            f"Embedding has dimension {vector.shape[0]}, expected {dimension}"
        )
    if not np.all(np.isfinite(vector)):
        raise EmbeddingFailure("Embedding contains non-finite values")
    return vector.tolist()
