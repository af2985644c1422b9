"""Document ingestion pipeline."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from docqa.embedding.encoder import Embedder, checked_embedding
from docqa.errors import (
    EmbeddingFailure,
    IndexUnavailable,
    IngestionEmbeddingFailure,
    IngestionIndexUnavailable,
    IngestionStoreFailure,
)
from docqa.index.storage import ChunkStore
from docqa.index.vectors import VectorIndex
from docqa.models import Chunk, Document, VectorRecord
from docqa.utils.text import Chunker, ParagraphChunker, decode_text

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/plain"


def new_vector_id() -> str:
    """Return a fresh 36-character vector id."""
    return str(uuid.uuid4())


@dataclass(slots=True)
class IngestStats:
    ingested: int = 0
    empty: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "ingested":
            self.ingested += 1
        elif status == "empty":
            self.empty += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


class IngestionPipeline:
    """Turns one uploaded document into stored chunks and vector records.

    The two stores are written in two phases: every vector record first, then
    all chunk rows in a single batch. If phase one fails part-way, the chunk
    store is left untouched but vector records already inserted stay in the
    index; the raised error lists them. If the chunk batch itself fails, every
    record of the document is listed.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        store: ChunkStore,
        *,
        chunker: Chunker | None = None,
        embed_workers: int = 1,
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.store = store
        self.chunker = chunker or ParagraphChunker()
        self.embed_workers = max(1, embed_workers)

    def ingest(self, content: str, title: str, content_type: str = DEFAULT_CONTENT_TYPE) -> Document:
        document_id = self.store.create_document(title, content, content_type)
        LOGGER.info("Created document %s (%r)", document_id, title)

        passages = self.chunker.split(content)
        if not passages:
            LOGGER.info("Document %s has no non-empty paragraphs", document_id)
            return self.store.get_document(document_id)

        chunks = self._index_passages(document_id, passages)
        self._save_chunks(document_id, chunks)
        LOGGER.info("Stored %d chunks for document %s", len(chunks), document_id)
        return self.store.get_document(document_id)

    def ingest_bytes(
        self, raw: bytes, title: str, content_type: str | None = None
    ) -> Document:
        """Decode raw upload bytes as text and ingest them."""
        return self.ingest(decode_text(raw), title, content_type or DEFAULT_CONTENT_TYPE)

    def _index_passages(self, document_id: int, passages: Sequence[str]) -> List[Chunk]:
        chunks: List[Chunk] = []
        inserted: List[str] = []
        vectors = self._embed_all(passages)
        try:
            for chunk_index, (passage, vector) in enumerate(zip(passages, vectors)):
                vector_id = new_vector_id()
                self.index.insert(
                    VectorRecord(
                        vector_id=vector_id,
                        vector=vector,
                        document_id=document_id,
                        chunk_index=chunk_index,
                    )
                )
                inserted.append(vector_id)
                chunks.append(
                    Chunk(
                        document_id=document_id,
                        chunk_index=chunk_index,
                        content=passage,
                        vector_id=vector_id,
                    )
                )
        except EmbeddingFailure as exc:
            self._log_abort(document_id, inserted, exc)
            raise IngestionEmbeddingFailure(
                f"Ingestion of document {document_id} aborted: {exc}",
                document_id=document_id,
                orphaned_vector_ids=inserted,
            ) from exc
        except IndexUnavailable as exc:
            self._log_abort(document_id, inserted, exc)
            raise IngestionIndexUnavailable(
                f"Ingestion of document {document_id} aborted: {exc}",
                document_id=document_id,
                orphaned_vector_ids=inserted,
            ) from exc
        finally:
            # Closes the embedding pool before any error propagates.
            vectors.close()
        return chunks

    def _save_chunks(self, document_id: int, chunks: Sequence[Chunk]) -> None:
        try:
            self.store.save_chunks(chunks)
        except Exception as exc:
            inserted = [chunk.vector_id for chunk in chunks]
            self._log_abort(document_id, inserted, exc)
            raise IngestionStoreFailure(
                f"Saving chunks of document {document_id} failed: {exc}",
                document_id=document_id,
                orphaned_vector_ids=inserted,
            ) from exc

    def _embed_all(self, passages: Sequence[str]):
        """Yield checked embeddings in passage order."""
        dimension = self.index.dimension
        if self.embed_workers == 1:
            for passage in passages:
                yield checked_embedding(self.embedder, passage, dimension)
            return

        # map() keeps submission order, so chunk indices follow split order.
        with ThreadPoolExecutor(max_workers=self.embed_workers) as pool:
            yield from pool.map(
                lambda passage: checked_embedding(self.embedder, passage, dimension),
                passages,
            )

    @staticmethod
    def _log_abort(document_id: int, inserted: Sequence[str], exc: Exception) -> None:
        LOGGER.warning(
            "Ingestion of document %s failed after %d vector inserts; "
            "document row kept, no chunks saved, orphaned vector ids: %s (%s)",
            document_id,
            len(inserted),
            list(inserted),
            exc,
        )
