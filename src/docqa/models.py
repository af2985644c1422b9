"""Core docqa data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(slots=True, frozen=True)
class Document:
    """An uploaded text document as persisted by the chunk store."""

    id: int
    title: str
    content: str
    content_type: str
    created_at: str | None = None


@dataclass(slots=True, frozen=True)
class Chunk:
    """One retrievable passage of a document, linked to its vector record."""

    document_id: int
    chunk_index: int
    content: str
    vector_id: str
    created_at: str | None = None


@dataclass(slots=True, frozen=True)
class VectorRecord:
    """Unit stored in the vector index."""

    vector_id: str
    vector: Sequence[float]
    document_id: int
    chunk_index: int


@dataclass(slots=True, frozen=True)
class SearchHit:
    vector_id: str
    document_id: int
    chunk_index: int
    score: float


@dataclass(slots=True, frozen=True)
class RetrievedPassage:
    """A search hit resolved to the chunk text it points at."""

    hit: SearchHit
    content: str

    @property
    def score(self) -> float:
        return self.hit.score
