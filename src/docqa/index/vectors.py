"""Vector index abstraction and its Qdrant backend."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Sequence

from qdrant_client import QdrantClient, models

from docqa.errors import IndexUnavailable
from docqa.models import SearchHit, VectorRecord

if TYPE_CHECKING:
    from docqa.config import AppConfig

LOGGER = logging.getLogger(__name__)

_SERVABLE_STATUSES = {models.CollectionStatus.GREEN, models.CollectionStatus.YELLOW}


class VectorIndex(ABC):
    """Durable similarity-searchable storage of :class:`VectorRecord` objects.

    Collection setup runs at most once per instance. ``insert`` and ``search``
    wait on the same guard, so the first caller performs setup and concurrent
    callers block until it is done.
    """

    def __init__(self, collection_name: str, *, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.collection_name = collection_name
        self.dimension = dimension
        self._setup_lock = threading.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_collection(self) -> None:
        """Create, index and load the collection if needed; idempotent.

        Raises:
            IndexUnavailable: if any setup step fails. Not retried.
        """
        if self._ready:
            return
        with self._setup_lock:
            if self._ready:
                return
            self._setup()
            self._ready = True
            LOGGER.info("Vector collection %s is ready", self.collection_name)

    def insert(self, record: VectorRecord) -> None:
        if len(record.vector) != self.dimension:
            raise IndexUnavailable(
                f"Vector for {record.vector_id} has dimension {len(record.vector)}, "
                f"collection expects {self.dimension}"
            )
        self.ensure_collection()
        self._insert(record)

    def search(self, query_vector: Sequence[float], k: int) -> List[SearchHit]:
        """Return at most ``k`` hits, most similar first."""
        if k < 1:
            raise ValueError("k must be at least 1")
        if len(query_vector) != self.dimension:
            raise IndexUnavailable(
                f"Query vector has dimension {len(query_vector)}, "
                f"collection expects {self.dimension}"
            )
        self.ensure_collection()
        hits = self._search(query_vector, k)
        return sorted(hits, key=lambda hit: hit.score, reverse=True)[:k]

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""

    @abstractmethod
    def _setup(self) -> None: ...

    @abstractmethod
    def _insert(self, record: VectorRecord) -> None: ...

    @abstractmethod
    def _search(self, query_vector: Sequence[float], k: int) -> List[SearchHit]: ...


class QdrantVectorIndex(VectorIndex):
    """Qdrant-backed index: cosine distance, HNSW, strongly consistent reads.

    Parameters
    ----------
    client:
        A connected ``QdrantClient`` (remote or embedded).
    collection_name:
        Name of the collection holding every document vector.
    dimension:
        Configured embedding dimension.
    shard_number:
        Shards requested when the collection is created.
    ef_construct:
        HNSW candidate-list size used while building the graph.
    """

    def __init__(
        self,
        client: QdrantClient,
        collection_name: str,
        *,
        dimension: int,
        shard_number: int = 2,
        ef_construct: int = 1024,
    ) -> None:
        super().__init__(collection_name, dimension=dimension)
        self._client = client
        self.shard_number = shard_number
        self.ef_construct = ef_construct

    @classmethod
    def from_config(cls, config: AppConfig) -> QdrantVectorIndex:
        if config.qdrant_url:
            client = QdrantClient(
                url=config.qdrant_url,
                api_key=config.qdrant_api_key,
                timeout=config.qdrant_timeout,
            )
        else:
            path = config.qdrant_path
            path.mkdir(parents=True, exist_ok=True)
            client = QdrantClient(path=str(path))
        return cls(
            client,
            config.collection_name,
            dimension=config.vector_dimension,
            shard_number=config.shard_number,
            ef_construct=config.hnsw_ef_construct,
        )

    @property
    def client(self) -> QdrantClient:
        return self._client

    def close(self) -> None:
        self._client.close()

    def _setup(self) -> None:
        name = self.collection_name
        try:
            exists = self._client.collection_exists(name)
        except Exception as exc:
            raise IndexUnavailable(f"Cannot reach vector store: {exc}") from exc

        if exists:
            LOGGER.info("Collection %s already exists", name)
        else:
            self._create_collection()
        self._load_collection()

    def _create_collection(self) -> None:
        name = self.collection_name
        LOGGER.info(
            "Creating collection %s (dimension=%d, shards=%d, ef_construct=%d)",
            name,
            self.dimension,
            self.shard_number,
            self.ef_construct,
        )
        try:
            created = self._client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=self.dimension, distance=models.Distance.COSINE
                ),
                shard_number=self.shard_number,
                hnsw_config=models.HnswConfigDiff(ef_construct=self.ef_construct),
            )
        except Exception as exc:
            raise IndexUnavailable(f"Failed to create collection {name}: {exc}") from exc
        if not created:
            raise IndexUnavailable(f"Failed to create collection {name}")

        try:
            self._client.create_payload_index(
                collection_name=name,
                field_name="document_id",
                field_schema=models.PayloadSchemaType.INTEGER,
                wait=True,
            )
        except Exception as exc:
            raise IndexUnavailable(f"Failed to build payload index on {name}: {exc}") from exc

    def _load_collection(self) -> None:
        """Check that the collection can serve requests with the configured dimension."""
        name = self.collection_name
        try:
            info = self._client.get_collection(name)
        except Exception as exc:
            raise IndexUnavailable(f"Failed to load collection {name}: {exc}") from exc

        if info.status not in _SERVABLE_STATUSES:
            raise IndexUnavailable(f"Collection {name} is not servable (status={info.status})")

        size = _vector_size(info)
        if size is not None and size != self.dimension:
            raise IndexUnavailable(
                f"Collection {name} has vector size {size}, expected {self.dimension}"
            )
        LOGGER.info("Collection %s loaded (status=%s)", name, info.status)

    def _insert(self, record: VectorRecord) -> None:
        LOGGER.debug(
            "Inserting vector %s (document=%s, chunk=%s)",
            record.vector_id,
            record.document_id,
            record.chunk_index,
        )
        point = models.PointStruct(
            id=record.vector_id,
            vector=[float(value) for value in record.vector],
            payload={
                "vector_id": record.vector_id,
                "document_id": int(record.document_id),
                "chunk_index": int(record.chunk_index),
            },
        )
        try:
            result = self._client.upsert(
                collection_name=self.collection_name, points=[point], wait=True
            )
        except Exception as exc:
            raise IndexUnavailable(f"Failed to insert vector {record.vector_id}: {exc}") from exc

        if result.status != models.UpdateStatus.COMPLETED:
            raise IndexUnavailable(
                f"Insert of vector {record.vector_id} not applied (status={result.status})"
            )

    def _search(self, query_vector: Sequence[float], k: int) -> List[SearchHit]:
        try:
            response = self._client.query_points(
                collection_name=self.collection_name,
                query=[float(value) for value in query_vector],
                limit=k,
                with_payload=True,
                consistency=models.ReadConsistencyType.ALL,
            )
        except Exception as exc:
            raise IndexUnavailable(f"Search failed: {exc}") from exc

        hits: List[SearchHit] = []
        for point in response.points:
            payload: dict[str, Any] = point.payload or {}
            if "document_id" not in payload or "chunk_index" not in payload:
                LOGGER.warning("Skipping point %s without document payload", point.id)
                continue
            hits.append(
                SearchHit(
                    vector_id=str(payload.get("vector_id", point.id)),
                    document_id=int(payload["document_id"]),
                    chunk_index=int(payload["chunk_index"]),
                    score=float(point.score),
                )
            )
        LOGGER.debug("Search returned %d hits (k=%d)", len(hits), k)
        return hits

    def count(self) -> int:
        self.ensure_collection()
        try:
            return int(self._client.count(self.collection_name, exact=True).count)
        except Exception as exc:
            raise IndexUnavailable(f"Count failed: {exc}") from exc


def _vector_size(info: models.CollectionInfo) -> int | None:
    vectors = info.config.params.vectors
    if isinstance(vectors, models.VectorParams):
        return int(vectors.size)
    # Named vectors are not used by this collection.
    return None
