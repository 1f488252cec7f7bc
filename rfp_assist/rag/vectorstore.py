"""Vector store interface, point ids and the Milvus adapter."""

from __future__ import annotations

import hashlib
import json
import logging
import warnings
from abc import ABC, abstractmethod
from typing import List

from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    MilvusException,
    connections,
    utility,
)

from rfp_assist.config import Settings
from rfp_assist.models import ChunkPayload, EmbeddedPoint, SearchHit
from rfp_assist.rag.errors import (
    DimensionMismatch,
    InvalidConfiguration,
    UpsertError,
    VectorIndexError,
)

logger = logging.getLogger(__name__)

DISTANCES = ("cosine", "dot")


def point_id(doc_id: str, chunk_index: int) -> int:
    """Derive the point id of a chunk.

    Pure function of ``(doc_id, chunk_index)`` so re-indexing a document
    overwrites its points instead of appending duplicates. The first 12 hex
    digits of the SHA-1 give a 48-bit integer, safe for int64 keys.
    """
    digest = hashlib.sha1(f"{doc_id}:{chunk_index}".encode("utf-8")).hexdigest()
    return int(digest[:12], 16)


def rank_hits(hits: List[SearchHit]) -> List[SearchHit]:
    """Sort hits by descending score, keeping store order for ties."""
    return sorted(hits, key=lambda h: -h.score)


def warn_dimension_mismatch(collection: str, recorded: int, expected: int) -> None:
    warning = DimensionMismatch(collection, recorded, expected)
    logger.warning(str(warning))
    warnings.warn(warning, stacklevel=3)


class VectorStore(ABC):
    """Persistent collection of ``(vector, chunk payload)`` points."""

    collection_name: str

    @abstractmethod
    def collection_dimension(self) -> int | None:
        """Recorded vector dimension, or None when the collection is absent."""

    @abstractmethod
    def ensure_collection(self, dimension: int) -> None:
        """Create the collection for ``dimension`` if it does not exist.

        Idempotent. An existing collection with another dimension is kept and
        a ``DimensionMismatch`` warning is emitted.
        """

    @abstractmethod
    def upsert(self, points: List[EmbeddedPoint]) -> int:
        """Write points, replacing any with the same id.

        Returns:
            Number of points written.

        Raises:
            UpsertError: When some points could not be written.
        """

    @abstractmethod
    def delete_document(self, doc_id: str) -> int:
        """Remove every point of ``doc_id``; returns how many were removed."""

    @abstractmethod
    def search(self, vector: List[float], limit: int) -> List[SearchHit]:
        """Nearest neighbours of ``vector``, best first.

        Raises:
            VectorIndexError: When the backing service cannot be queried.
        """

    @abstractmethod
    def count(self) -> int:
        """Number of stored points."""


class MilvusStore(VectorStore):
    _OUTPUT_FIELDS = ["doc_id", "title", "text", "chunk_index", "updated_at"]

    def __init__(self, settings: Settings, collection_name: str | None = None):
        if settings.distance not in DISTANCES:
            raise InvalidConfiguration(f"Unknown distance: {settings.distance!r}")
        self.settings = settings
        self.collection_name = collection_name or settings.collection_name
        self.metric_type = "COSINE" if settings.distance == "cosine" else "IP"
        self.collection: Collection | None = None
        self._connect()

    def _connect(self) -> None:
        alias = "default"
        if connections.has_connection(alias):
            return
        kwargs = {}
        if self.settings.milvus_db:
            kwargs["db_name"] = self.settings.milvus_db
        connections.connect(
            alias=alias,
            host=self.settings.milvus_host,
            port=str(self.settings.milvus_port),
            secure=self.settings.milvus_tls,
            **kwargs,
        )

    def _schema(self, dimension: int) -> CollectionSchema:
        fields = [
            FieldSchema(name="id", dtype=DataType.INT64, is_primary=True, auto_id=False),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=dimension),
            FieldSchema(name="doc_id", dtype=DataType.VARCHAR, max_length=256),
            FieldSchema(name="title", dtype=DataType.VARCHAR, max_length=512),
            FieldSchema(name="text", dtype=DataType.VARCHAR, max_length=8192),
            FieldSchema(name="chunk_index", dtype=DataType.INT64),
            FieldSchema(name="updated_at", dtype=DataType.VARCHAR, max_length=64),
        ]
        return CollectionSchema(fields=fields, description="RFP reference chunks")

    def collection_dimension(self) -> int | None:
        try:
            if not utility.has_collection(self.collection_name):
                return None
            if self.collection is None:
                self.collection = Collection(self.collection_name)
            fields = self.collection.schema.fields
        except MilvusException as e:
            raise VectorIndexError(
                f"Cannot inspect Milvus collection '{self.collection_name}': {e}"
            ) from e
        for field in fields:
            if field.dtype == DataType.FLOAT_VECTOR:
                return int(field.params["dim"])
        return None

    def ensure_collection(self, dimension: int) -> None:
        recorded = self.collection_dimension()
        if recorded is not None:
            if recorded != dimension:
                warn_dimension_mismatch(self.collection_name, recorded, dimension)
            return

        logger.info(
            f"Creating Milvus collection '{self.collection_name}' (dim={dimension}, metric={self.metric_type})"
        )
        try:
            self.collection = Collection(self.collection_name, schema=self._schema(dimension))
            self.collection.create_index(
                field_name="embedding",
                index_params={
                    "index_type": "IVF_FLAT",
                    "metric_type": self.metric_type,
                    "params": {"nlist": 1024},
                },
            )
            self.collection.load()
        except MilvusException as e:
            raise VectorIndexError(
                f"Cannot create Milvus collection '{self.collection_name}': {e}"
            ) from e

    def _require_collection(self) -> Collection:
        if self.collection is None:
            try:
                exists = utility.has_collection(self.collection_name)
            except MilvusException as e:
                raise VectorIndexError(f"Milvus is unavailable: {e}") from e
            if not exists:
                raise InvalidConfiguration(
                    f"Milvus collection '{self.collection_name}' does not exist"
                )
            self.collection = Collection(self.collection_name)
        return self.collection

    def upsert(self, points: List[EmbeddedPoint]) -> int:
        if not points:
            return 0
        collection = self._require_collection()
        columns = [
            [p.id for p in points],
            [p.vector for p in points],
            [p.payload.doc_id for p in points],
            [p.payload.title for p in points],
            [p.payload.text for p in points],
            [p.payload.chunk_index for p in points],
            [p.payload.updated_at or "" for p in points],
        ]
        try:
            collection.upsert(columns)
            collection.flush()
        except MilvusException as e:
            raise UpsertError(
                f"Milvus upsert into '{self.collection_name}' failed: {e}",
                failed_ids=[p.id for p in points],
            ) from e
        logger.info(f"Upserted {len(points)} points into '{self.collection_name}'")
        return len(points)

    def delete_document(self, doc_id: str) -> int:
        try:
            if not utility.has_collection(self.collection_name):
                return 0
            collection = self._require_collection()
            result = collection.delete(f"doc_id == {json.dumps(doc_id)}")
            collection.flush()
        except MilvusException as e:
            raise VectorIndexError(
                f"Milvus delete of document {doc_id} from '{self.collection_name}' failed: {e}"
            ) from e
        deleted = int(getattr(result, "delete_count", 0) or 0)
        logger.info(f"Deleted {deleted} points of document {doc_id} from '{self.collection_name}'")
        return deleted

    def search(self, vector: List[float], limit: int) -> List[SearchHit]:
        collection = self._require_collection()
        try:
            collection.load()
            results = collection.search(
                data=[vector],
                anns_field="embedding",
                param={"metric_type": self.metric_type, "params": {"nprobe": 16}},
                limit=limit,
                output_fields=self._OUTPUT_FIELDS,
            )
        except MilvusException as e:
            raise VectorIndexError(
                f"Milvus search in '{self.collection_name}' failed: {e}"
            ) from e
        hits = []
        for hit in results[0]:
            rec = {f: hit.entity.get(f) for f in self._OUTPUT_FIELDS}
            hits.append(
                SearchHit(
                    id=int(hit.id),
                    score=float(hit.distance),
                    payload=ChunkPayload(
                        doc_id=rec["doc_id"],
                        title=rec["title"] or "",
                        text=rec["text"],
                        chunk_index=int(rec["chunk_index"]),
                        updated_at=rec["updated_at"] or None,
                    ),
                )
            )
        return rank_hits(hits)

    def count(self) -> int:
        try:
            if not utility.has_collection(self.collection_name):
                return 0
            return int(self._require_collection().num_entities)
        except MilvusException as e:
            raise VectorIndexError(
                f"Cannot count Milvus collection '{self.collection_name}': {e}"
            ) from e


def build_vector_store(settings: Settings) -> VectorStore:
    """Create the vector store named by ``settings.vector_store``."""
    if settings.vector_store == "faiss":
        from rfp_assist.rag.faiss_store import FaissStore

        return FaissStore(settings)
    if settings.vector_store == "milvus":
        return MilvusStore(settings)
    raise InvalidConfiguration(f"Unknown vector store: {settings.vector_store!r}")
