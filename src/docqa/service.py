"""Entry points the host service calls: ingest, look up documents, answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from docqa.config import AppConfig
from docqa.embedding.encoder import Embedder, EmbeddingConfig, EmbeddingModel
from docqa.errors import EmbeddingFailure
from docqa.index.indexer import IngestionPipeline
from docqa.index.search import RetrievalPipeline
from docqa.index.storage import SQLiteChunkStore
from docqa.index.vectors import QdrantVectorIndex, VectorIndex
from docqa.models import Document, RetrievedPassage
from docqa.utils.text import build_chunker

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Status:
    documents: int
    chunks: int
    vectors: int


class KnowledgeBase:
    """Facade over the ingestion and retrieval pipelines.

    Construction runs the vector collection setup, so a ``KnowledgeBase`` that
    exists is ready to serve.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        store: SQLiteChunkStore,
        *,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or AppConfig()
        if embedder.dimension != index.dimension:
            raise EmbeddingFailure(
                f"Embedder dimension {embedder.dimension} does not match "
                f"configured vector dimension {index.dimension}"
            )
        self.embedder = embedder
        self.index = index
        self.store = store
        index.ensure_collection()
        self.ingestion = IngestionPipeline(
            embedder,
            index,
            store,
            chunker=build_chunker(
                self.config.chunker,
                max_chars=self.config.window_chars,
                overlap=self.config.window_overlap,
            ),
            embed_workers=self.config.embed_workers,
        )
        self.retrieval = RetrievalPipeline(embedder, index, store, top_k=self.config.top_k)

    @classmethod
    def from_config(cls, config: AppConfig, base_dir: Path | None = None) -> KnowledgeBase:
        """Open the SQLite store, load the embedding model and connect to Qdrant."""
        resolved_db = config.resolve_db_path(base_dir)
        resolved_db.parent.mkdir(parents=True, exist_ok=True)
        if not config.qdrant_url:
            config.qdrant_path = config.resolve_qdrant_path(base_dir)

        store = SQLiteChunkStore(resolved_db)
        embedder = EmbeddingModel(EmbeddingConfig(model_name=config.model_name))
        index = QdrantVectorIndex.from_config(config)
        LOGGER.info("Knowledge base using %s and collection %s", resolved_db, config.collection_name)
        return cls(embedder, index, store, config=config)

    def ingest(self, raw: bytes, title: str, content_type: str | None = None) -> Document:
        return self.ingestion.ingest_bytes(raw, title, content_type)

    def get_document(self, document_id: int) -> Document:
        return self.store.get_document(document_id)

    def list_documents(self) -> List[Document]:
        return self.store.list_documents()

    def answer(self, question: str) -> str:
        return self.retrieval.answer(question)

    def retrieve(self, question: str) -> List[RetrievedPassage]:
        return self.retrieval.retrieve(question)

    def status(self) -> Status:
        return Status(
            documents=len(self.store.list_documents()),
            chunks=self.store.count_chunks(),
            vectors=self.index.count(),
        )

    def close(self) -> None:
        self.store.close()
        close = getattr(self.index, "close", None)
        if close is not None:
            close()
