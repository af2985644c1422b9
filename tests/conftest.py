"""Shared pytest fixtures: an offline embedder, a SQLite store and in-memory Qdrant."""

from __future__ import annotations

import hashlib
import re
from typing import List

import numpy as np
import pytest
from qdrant_client import QdrantClient

from docqa.index.storage import SQLiteChunkStore
from docqa.index.vectors import QdrantVectorIndex

DIMENSION = 256
_TOKEN = re.compile(r"\w+")


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Each lowercase token is hashed into one bucket, so texts sharing words
    have high cosine similarity. The last component is a small constant so no
    vector is all zeros.
    """

    def __init__(self, dimension: int = DIMENSION, fail_on: str | None = None) -> None:
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: List[str] = []

    def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise RuntimeError(f"cannot embed {text!r}")
        vector = np.zeros(self.dimension, dtype="float32")
        for token in _TOKEN.findall(text.lower()):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % (self.dimension - 1)
            vector[bucket] += 1.0
        vector[-1] = 0.01
        return vector / np.linalg.norm(vector)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path):
    """Create a temporary chunk store for testing."""
    chunk_store = SQLiteChunkStore(tmp_path / "test.db")
    yield chunk_store
    chunk_store.close()


@pytest.fixture
def qdrant_client():
    client = QdrantClient(location=":memory:")
    yield client
    client.close()


@pytest.fixture
def index(qdrant_client) -> QdrantVectorIndex:
    return QdrantVectorIndex(qdrant_client, "doc_vectors", dimension=DIMENSION)
