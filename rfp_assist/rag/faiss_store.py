import json
import logging
import os
from typing import Any, Dict, List

import faiss
import numpy as np

from rfp_assist.config import Settings
from rfp_assist.models import ChunkPayload, EmbeddedPoint, SearchHit
from rfp_assist.rag.errors import InvalidConfiguration, UpsertError
from rfp_assist.rag.vectorstore import (
    DISTANCES,
    VectorStore,
    rank_hits,
    warn_dimension_mismatch,
)

logger = logging.getLogger(__name__)


class FaissStore(VectorStore):
    """Local FAISS-backed store.

    Points live in an id-mapped flat inner-product index; payloads and
    insertion order live in a JSON sidecar. With empty paths in the settings
    the store is purely in-memory.
    """

    def __init__(self, settings: Settings, collection_name: str | None = None):
        if settings.distance not in DISTANCES:
            raise InvalidConfiguration(f"Unknown distance: {settings.distance!r}")
        self.settings = settings
        self.collection_name = collection_name or settings.collection_name
        self.normalize = settings.distance == "cosine"
        self.index_path = settings.faiss_index_path
        self.meta_path = settings.faiss_meta_path
        self.persistent = bool(self.index_path and self.meta_path)
        if self.persistent:
            for path in (self.index_path, self.meta_path):
                directory = os.path.dirname(path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
        self.index = None
        # point id -> {"seq": insertion sequence, "payload": {...}}
        self.metadata: Dict[int, Dict[str, Any]] = {}
        self.next_seq = 0
        self._load()

    @staticmethod
    def _normalize(vecs: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vecs, axis=1, keepdims=True) + 1e-12
        return vecs / norms

    def _create_index(self, dim: int) -> None:
        # Inner product search on normalized vectors = cosine similarity
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dim))

    def _load(self) -> None:
        if (
            self.persistent
            and os.path.exists(self.index_path)
            and os.path.exists(self.meta_path)
        ):
            self.index = faiss.read_index(self.index_path)
            with open(self.meta_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.metadata = {int(k): v for k, v in data.get("points", {}).items()}
            self.next_seq = int(data.get("next_seq", len(self.metadata)))
            logger.info(
                f"Loaded FAISS index '{self.collection_name}' with {self.index.ntotal} points"
            )
        else:
            # Defer index creation until the dimension is known
            self.index = None
            self.metadata = {}
            self.next_seq = 0

    def _save(self) -> None:
        if not self.persistent:
            return
        faiss.write_index(self.index, self.index_path)
        with open(self.meta_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "points": {str(k): v for k, v in self.metadata.items()},
                    "next_seq": self.next_seq,
                },
                f,
            )

    def _prepare(self, vectors: List[List[float]]) -> np.ndarray:
        arr = np.array(vectors, dtype=np.float32)
        return self._normalize(arr) if self.normalize else arr

    def collection_dimension(self) -> int | None:
        return None if self.index is None else int(self.index.d)

    def ensure_collection(self, dimension: int) -> None:
        if self.index is None:
            logger.info(
                f"Creating FAISS collection '{self.collection_name}' (dim={dimension})"
            )
            self._create_index(dimension)
            self._save()
            return
        if self.index.d == dimension:
            return
        if self.index.ntotal == 0:
            # Safe to recreate with new dimension
            self._create_index(dimension)
            self._save()
            return
        warn_dimension_mismatch(self.collection_name, int(self.index.d), dimension)

    def upsert(self, points: List[EmbeddedPoint]) -> int:
        if not points:
            return 0
        if self.index is None:
            self._create_index(len(points[0].vector))

        # Last occurrence wins when a batch repeats an id
        by_id: Dict[int, EmbeddedPoint] = {}
        failed: List[int] = []
        for p in points:
            if len(p.vector) != self.index.d:
                failed.append(p.id)
            else:
                by_id[p.id] = p

        valid = list(by_id.values())
        if valid:
            ids = np.array([p.id for p in valid], dtype=np.int64)
            self.index.remove_ids(ids)
            self.index.add_with_ids(self._prepare([p.vector for p in valid]), ids)
            for p in valid:
                previous = self.metadata.get(p.id)
                seq = previous["seq"] if previous else self.next_seq
                if previous is None:
                    self.next_seq += 1
                self.metadata[p.id] = {"seq": seq, "payload": p.payload.model_dump()}
            self._save()
            logger.info(f"Upserted {len(valid)} points into '{self.collection_name}'")

        if failed:
            raise UpsertError(
                f"{len(failed)} points do not match index dimension {self.index.d}",
                failed_ids=failed,
                upserted=len(valid),
            )
        return len(valid)

    def delete_document(self, doc_id: str) -> int:
        stale = [
            pid for pid, meta in self.metadata.items()
            if meta["payload"]["doc_id"] == doc_id
        ]
        if not stale or self.index is None:
            return 0
        self.index.remove_ids(np.array(stale, dtype=np.int64))
        for pid in stale:
            del self.metadata[pid]
        self._save()
        logger.info(
            f"Deleted {len(stale)} points of document {doc_id} from '{self.collection_name}'"
        )
        return len(stale)

    def search(self, vector: List[float], limit: int) -> List[SearchHit]:
        if self.index is None or self.index.ntotal == 0 or limit <= 0:
            return []
        if len(vector) != self.index.d:
            logger.warning(
                f"Query dimension {len(vector)} does not match index dimension {self.index.d}; no results"
            )
            return []
        q = self._prepare([vector])
        scores, idxs = self.index.search(q, min(limit, self.index.ntotal))
        found = []
        for score, idx in zip(scores[0].tolist(), idxs[0].tolist()):
            meta = self.metadata.get(int(idx))
            if idx < 0 or meta is None:
                continue
            found.append((meta["seq"], SearchHit(
                id=int(idx),
                score=float(score),
                payload=ChunkPayload(**meta["payload"]),
            )))
        # Insertion order breaks ties
        found.sort(key=lambda item: item[0])
        return rank_hits([hit for _, hit in found])

    def count(self) -> int:
        return 0 if self.index is None else int(self.index.ntotal)
