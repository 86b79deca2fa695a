"""In-process face store, used for tests and single-node deployments without Postgres."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

import numpy as np
import numpy.typing as npt
from typing_extensions import override

from ..exceptions import EmbeddingDimensionError
from ..similarity import SearchHit, rank_by_cosine_distance
from .base import FaceRecord, FaceStore, ListedFace


class InMemoryFaceStore(FaceStore):
    """Dict-backed store; a lock keeps concurrent requests consistent."""

    def __init__(self, embedding_dim: int | None = None):
        self.embedding_dim = embedding_dim
        self._records: dict[str, FaceRecord] = {}
        self._lock = threading.Lock()

    @override
    def insert(self, embedding: npt.NDArray[np.float32], image_base64: str) -> str:
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1).copy()
        if self.embedding_dim is not None and vector.size != self.embedding_dim:
            raise EmbeddingDimensionError(
                f"Expected {self.embedding_dim}-dim embedding, got {vector.size}"
            )

        record = FaceRecord(
            id=str(uuid.uuid4()),
            embedding=vector,
            image_base64=image_base64,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._records[record.id] = record
        return record.id

    @override
    def get(self, face_id: str) -> FaceRecord | None:
        with self._lock:
            return self._records.get(face_id)

    @override
    def list_recent(self, limit: int) -> list[ListedFace]:
        with self._lock:
            records = list(self._records.values())
        # dict order is insertion order, so reversing keeps ties newest-first
        records.reverse()
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [ListedFace(id=r.id, created_at=r.created_at) for r in records[:limit]]

    @override
    def delete(self, face_id: str) -> bool:
        with self._lock:
            return self._records.pop(face_id, None) is not None

    @override
    def search(
        self, embedding: npt.NDArray[np.float32], top_k: int
    ) -> list[SearchHit]:
        with self._lock:
            candidates = [(r.id, r.embedding) for r in self._records.values()]
        return rank_by_cosine_distance(embedding, candidates, top_k)

    @override
    def count(self) -> int:
        with self._lock:
            return len(self._records)
