"""Question answering over the indexed chunks."""

from __future__ import annotations

import logging
from typing import Dict, List

from docqa.embedding.encoder import Embedder, checked_embedding
from docqa.errors import EmbeddingFailure, IndexUnavailable, RetrievalUnavailable
from docqa.index.storage import ChunkStore
from docqa.index.vectors import VectorIndex
from docqa.models import Chunk, RetrievedPassage

LOGGER = logging.getLogger(__name__)

NO_ANSWER = "No relevant information found."
DEFAULT_TOP_K = 3


class RetrievalPipeline:
    """Embeds a question, searches the index and resolves hits to chunk text.

    The answer is the single most similar resolvable chunk. Hits whose chunk
    row is missing are skipped, so drift between the two stores degrades to
    fewer results instead of an error.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        store: ChunkStore,
        *,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        self.embedder = embedder
        self.index = index
        self.store = store
        self.top_k = top_k

    def retrieve(self, question: str) -> List[RetrievedPassage]:
        """Return resolved passages for ``question`` in ranked order.

        Raises:
            RetrievalUnavailable: if embedding or the index search fails.
        """
        try:
            vector = checked_embedding(self.embedder, question, self.index.dimension)
            hits = self.index.search(vector, self.top_k)
        except (EmbeddingFailure, IndexUnavailable) as exc:
            LOGGER.error("Retrieval failed: %s", exc)
            raise RetrievalUnavailable(f"Retrieval unavailable: {exc}") from exc

        chunks_by_document: Dict[int, Dict[int, Chunk]] = {}
        passages: List[RetrievedPassage] = []
        for hit in hits:
            if hit.document_id not in chunks_by_document:
                chunks_by_document[hit.document_id] = {
                    chunk.chunk_index: chunk
                    for chunk in self.store.find_chunks_by_document(hit.document_id)
                }
            chunk = chunks_by_document[hit.document_id].get(hit.chunk_index)
            if chunk is None:
                LOGGER.debug(
                    "No chunk row for hit %s (document=%s, chunk=%s); skipping",
                    hit.vector_id,
                    hit.document_id,
                    hit.chunk_index,
                )
                continue
            passages.append(RetrievedPassage(hit=hit, content=chunk.content))

        LOGGER.info("Question resolved %d of %d hits", len(passages), len(hits))
        return passages

    def answer(self, question: str) -> str:
        passages = self.retrieve(question)
        if not passages:
            return NO_ANSWER
        return passages[0].content
