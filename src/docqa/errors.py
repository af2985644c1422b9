"""Error types raised by the docqa core."""

from __future__ import annotations

from typing import Sequence


class DocQAError(Exception):
    """Base class for all docqa failures."""


class DocumentNotFound(DocQAError, LookupError):
    """Raised when a document id is unknown to the chunk store."""

    def __init__(self, document_id: int) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class IndexUnavailable(DocQAError):
    """Vector index create/insert/search failed at the transport or status level."""


class EmbeddingFailure(DocQAError):
    """The embedder raised or produced a malformed vector."""


class RetrievalUnavailable(DocQAError):
    """A question could not be answered because a collaborator failed."""


class IngestionError(DocQAError):
    """Ingestion aborted after the document row was written.

    ``orphaned_vector_ids`` lists the records already inserted into the vector
    index for this document. They have no chunk rows and are not removed.
    """

    def __init__(
        self,
        message: str,
        *,
        document_id: int,
        orphaned_vector_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.orphaned_vector_ids = list(orphaned_vector_ids)


class IngestionEmbeddingFailure(IngestionError, EmbeddingFailure):
    """Embedding failed part-way through an ingestion."""


class IngestionIndexUnavailable(IngestionError, IndexUnavailable):
    """The vector index rejected an insert part-way through an ingestion."""


class IngestionStoreFailure(IngestionError):
    """The chunk store rejected the chunk batch after every vector was inserted."""
