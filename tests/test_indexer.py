"""Tests for the ingestion pipeline."""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from docqa.errors import (
    EmbeddingFailure,
    IndexUnavailable,
    IngestionEmbeddingFailure,
    IngestionError,
    IngestionIndexUnavailable,
    IngestionStoreFailure,
)
from docqa.index.indexer import IngestionPipeline, IngestStats, new_vector_id
from docqa.models import Document
from docqa.utils.text import SlidingWindowChunker


class TestIngestStats:
    """Test IngestStats tracking."""

    def test_init_defaults(self):
        stats = IngestStats()
        assert (stats.ingested, stats.empty, stats.failed) == (0, 0, 0)
        assert stats.processed_files == []

    def test_increment(self):
        stats = IngestStats()

        stats.increment("ingested", Path("/tmp/a.txt"))
        stats.increment("empty", Path("/tmp/b.txt"))
        stats.increment("failed", Path("/tmp/c.txt"))
        stats.increment("unknown_status", Path("/tmp/d.txt"))

        assert stats.ingested == 1
        assert stats.empty == 1
        assert stats.failed == 2
        assert len(stats.processed_files) == 4


def test_new_vector_id_shape():
    ids = {new_vector_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(vector_id) == 36 for vector_id in ids)


class TestIngestionPipeline:
    """Test ingestion against a real SQLite store and embedded Qdrant."""

    @pytest.fixture
    def pipeline(self, embedder, index, store):
        return IngestionPipeline(embedder, index, store)

    def test_two_paragraphs(self, pipeline, store):
        document = pipeline.ingest("A.\n\nB.", "T", "text/plain")

        assert isinstance(document, Document)
        assert document.title == "T"
        assert document.content == "A.\n\nB."
        chunks = store.find_chunks_by_document(document.id)
        assert [c.chunk_index for c in chunks] == [0, 1]
        assert [c.content for c in chunks] == ["A.", "B."]

    def test_blank_document_has_no_chunks(self, pipeline, store, embedder, index):
        document = pipeline.ingest("\n\n   \n\n", "Empty", "text/plain")

        assert store.get_document(document.id) == document
        assert store.find_chunks_by_document(document.id) == []
        assert embedder.calls == []
        assert index.count() == 0

    def test_chunk_count_matches_paragraphs(self, pipeline, store, index):
        content = "one\n\n\n\n  two  \n\n \n\nthree\n\nfour"

        document = pipeline.ingest(content, "Four", "text/plain")

        chunks = store.find_chunks_by_document(document.id)
        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
        assert [c.content for c in chunks] == ["one", "two", "three", "four"]
        assert index.count() == 4

    def test_vector_ids_link_both_stores(self, pipeline, store, index, embedder):
        document = pipeline.ingest("alpha beta\n\ngamma delta", "Linked", "text/plain")

        for chunk in store.find_chunks_by_document(document.id):
            hits = index.search(embedder.embed(chunk.content).tolist(), 1)
            assert hits[0].vector_id == chunk.vector_id
            assert hits[0].document_id == document.id
            assert hits[0].chunk_index == chunk.chunk_index

    def test_embeds_what_is_stored(self, pipeline, store, embedder):
        document = pipeline.ingest("  first  \n\nsecond", "T", "text/plain")

        stored = [c.content for c in store.find_chunks_by_document(document.id)]
        assert embedder.calls == stored

    def test_reingest_same_title_creates_new_document(self, pipeline, store):
        first = pipeline.ingest("A.\n\nB.", "T", "text/plain")
        second = pipeline.ingest("A.\n\nB.", "T", "text/plain")

        assert first.id != second.id
        first_ids = {c.vector_id for c in store.find_chunks_by_document(first.id)}
        second_ids = {c.vector_id for c in store.find_chunks_by_document(second.id)}
        assert first_ids.isdisjoint(second_ids)
        assert [c.chunk_index for c in store.find_chunks_by_document(second.id)] == [0, 1]

    def test_ingest_bytes_defaults(self, pipeline):
        document = pipeline.ingest_bytes("café\n\nbar".encode("utf-8"), "Bytes")

        assert document.content == "café\n\nbar"
        assert document.content_type == "text/plain"

    def test_ingest_bytes_keeps_content_type(self, pipeline):
        document = pipeline.ingest_bytes(b"# Title", "Md", "text/markdown")
        assert document.content_type == "text/markdown"

    def test_custom_chunker(self, embedder, index, store):
        pipeline = IngestionPipeline(
            embedder, index, store, chunker=SlidingWindowChunker(max_chars=4, overlap=0)
        )

        document = pipeline.ingest("abcdefgh", "Windows", "text/plain")

        assert [c.content for c in store.find_chunks_by_document(document.id)] == ["abcd", "efgh"]

    def test_parallel_embedding_keeps_split_order(self, embedder, index, store):
        pipeline = IngestionPipeline(embedder, index, store, embed_workers=4)
        paragraphs = [f"paragraph number {i}" for i in range(12)]

        document = pipeline.ingest("\n\n".join(paragraphs), "Parallel", "text/plain")

        chunks = store.find_chunks_by_document(document.id)
        assert [c.chunk_index for c in chunks] == list(range(12))
        assert [c.content for c in chunks] == paragraphs


class TestIngestionFailures:
    """Test the two-phase write failure window."""

    def test_embedding_failure_mid_document(self, embedder, index, store):
        embedder.fail_on = "broken"
        pipeline = IngestionPipeline(embedder, index, store)

        with pytest.raises(IngestionEmbeddingFailure) as excinfo:
            pipeline.ingest("fine one\n\nfine two\n\nbroken three", "T", "text/plain")

        error = excinfo.value
        assert isinstance(error, EmbeddingFailure)
        assert isinstance(error, IngestionError)
        # Document row is kept, no chunks were saved.
        assert store.get_document(error.document_id).title == "T"
        assert store.find_chunks_by_document(error.document_id) == []
        # Earlier inserts stay in the index and are reported.
        assert len(error.orphaned_vector_ids) == 2
        assert index.count() == 2

    def test_index_failure_mid_document(self, embedder, store):
        index = MagicMock()
        index.dimension = embedder.dimension
        index.insert.side_effect = [None, IndexUnavailable("insert rejected")]
        pipeline = IngestionPipeline(embedder, index, store)

        with pytest.raises(IngestionIndexUnavailable) as excinfo:
            pipeline.ingest("one\n\ntwo\n\nthree", "T", "text/plain")

        error = excinfo.value
        assert isinstance(error, IndexUnavailable)
        assert len(error.orphaned_vector_ids) == 1
        assert error.orphaned_vector_ids[0] == index.insert.call_args_list[0].args[0].vector_id
        assert store.find_chunks_by_document(error.document_id) == []
        assert index.insert.call_count == 2

    def test_malformed_embedding(self, store):
        embedder = MagicMock()
        embedder.embed.return_value = [0.1, 0.2]
        index = MagicMock()
        index.dimension = 3
        pipeline = IngestionPipeline(embedder, index, store)

        with pytest.raises(IngestionEmbeddingFailure, match="dimension 2, expected 3"):
            pipeline.ingest("only", "T", "text/plain")

        index.insert.assert_not_called()

    def test_first_chunk_failure_has_no_orphans(self, embedder, index, store):
        embedder.fail_on = "bad"
        pipeline = IngestionPipeline(embedder, index, store, embed_workers=2)

        with pytest.raises(IngestionEmbeddingFailure) as excinfo:
            pipeline.ingest("bad start\n\ngood end", "T", "text/plain")

        assert excinfo.value.orphaned_vector_ids == []
        assert index.count() == 0

    def test_failure_is_logged(self, embedder, index, store, caplog):
        embedder.fail_on = "boom"
        pipeline = IngestionPipeline(embedder, index, store)

        with caplog.at_level("WARNING", logger="docqa.index.indexer"):
            with pytest.raises(IngestionError):
                pipeline.ingest("ok\n\nboom", "T", "text/plain")

        assert "orphaned vector ids" in caplog.text

    def test_chunk_save_failure_orphans_every_vector(self, embedder, index, store, caplog):
        pipeline = IngestionPipeline(embedder, index, store)

        with patch.object(
            store, "save_chunks", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            with caplog.at_level("WARNING", logger="docqa.index.indexer"):
                with pytest.raises(IngestionStoreFailure) as excinfo:
                    pipeline.ingest("A.\n\nB.", "T", "text/plain")

        error = excinfo.value
        assert isinstance(error, IngestionError)
        assert isinstance(error.__cause__, sqlite3.OperationalError)
        assert len(error.orphaned_vector_ids) == 2
        assert index.count() == 2
        assert store.get_document(error.document_id).title == "T"
        assert store.find_chunks_by_document(error.document_id) == []
        assert "orphaned vector ids" in caplog.text

    def test_embedding_pool_closed_when_insert_fails(self, embedder, store):
        index = MagicMock()
        index.dimension = embedder.dimension
        index.insert.side_effect = IndexUnavailable("insert rejected")
        pipeline = IngestionPipeline(embedder, index, store, embed_workers=2)
        closed = []

        def embed_all(passages):
            try:
                for _ in passages:
                    yield [0.0] * embedder.dimension
            finally:
                closed.append(True)

        pipeline._embed_all = embed_all

        with pytest.raises(IngestionIndexUnavailable):
            pipeline.ingest("one\n\ntwo\n\nthree", "T", "text/plain")

        assert closed == [True]
