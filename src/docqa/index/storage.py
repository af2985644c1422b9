"""SQLite persistence for documents and chunk metadata."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Protocol, Sequence

from docqa.errors import DocumentNotFound
from docqa.models import Chunk, Document


class ChunkStore(Protocol):
    """Relational side of the knowledge base."""

    def create_document(self, title: str, content: str, content_type: str) -> int: ...

    def get_document(self, document_id: int) -> Document: ...

    def list_documents(self) -> List[Document]: ...

    def save_chunks(self, chunks: Sequence[Chunk]) -> None: ...

    def find_chunks_by_document(self, document_id: int) -> List[Chunk]: ...


class SQLiteChunkStore:
    """Persistence layer for documents and their chunk rows.

    One connection is shared between threads; statements are serialised by a
    lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path) if db_path != ":memory:" else db_path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON;")
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    content_type TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS document_chunks (
                    id INTEGER PRIMARY KEY,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    vector_id VARCHAR(36) NOT NULL UNIQUE,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(document_id) REFERENCES documents(id),
                    UNIQUE(document_id, chunk_index)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_document_chunks_document_id
                    ON document_chunks(document_id)
                """
            )

    def create_document(self, title: str, content: str, content_type: str) -> int:
        with self.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO documents(title, content, content_type) VALUES (?, ?, ?)",
                (title, content, content_type),
            )
            return int(cursor.lastrowid)

    def get_document(self, document_id: int) -> Document:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, title, content, content_type, created_at FROM documents WHERE id = ?",
                (document_id,),
            ).fetchone()
        if row is None:
            raise DocumentNotFound(document_id)
        return _to_document(row)

    def list_documents(self) -> List[Document]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, title, content, content_type, created_at FROM documents ORDER BY id"
            ).fetchall()
        return [_to_document(row) for row in rows]

    def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Insert all chunks in a single transaction."""
        if not chunks:
            return
        with self.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO document_chunks(document_id, chunk_index, content, vector_id)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (chunk.document_id, chunk.chunk_index, chunk.content, chunk.vector_id)
                    for chunk in chunks
                ],
            )

    def find_chunks_by_document(self, document_id: int) -> List[Chunk]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT document_id, chunk_index, content, vector_id, created_at
                FROM document_chunks
                WHERE document_id = ?
                ORDER BY chunk_index
                """,
                (document_id,),
            ).fetchall()
        return [
            Chunk(
                document_id=row["document_id"],
                chunk_index=row["chunk_index"],
                content=row["content"],
                vector_id=row["vector_id"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def count_chunks(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM document_chunks").fetchone()[0])


def _to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        content=row["content"],
        content_type=row["content_type"] or "text/plain",
        created_at=row["created_at"],
    )
