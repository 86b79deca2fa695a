"""
Face store interface.

A store persists face records (embedding plus the source image as base64
text) and answers nearest-neighbour queries. Whatever the backing engine,
`search` must order results by ascending cosine distance and report
``cosine = 1 - distance`` for each hit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import numpy as np
import numpy.typing as npt

from ..similarity import SearchHit


@dataclass(frozen=True)
class FaceRecord:
    """A stored face. Identifiers and timestamps are assigned by the store."""

    id: str
    embedding: npt.NDArray[np.float32]
    image_base64: str
    created_at: datetime


@dataclass(frozen=True)
class ListedFace:
    """Summary row returned by `FaceStore.list_recent`."""

    id: str
    created_at: datetime

    def as_dict(self) -> dict[str, object]:
        return {"id": self.id, "created_at": self.created_at.isoformat()}


class FaceStore(ABC):
    """Abstract persistent store for face embeddings."""

    @abstractmethod
    def insert(self, embedding: npt.NDArray[np.float32], image_base64: str) -> str:
        """Persist a record and return its new identifier."""

    @abstractmethod
    def get(self, face_id: str) -> FaceRecord | None:
        """Return the record, or None when ``face_id`` is unknown."""

    def get_image(self, face_id: str) -> str | None:
        record = self.get(face_id)
        return record.image_base64 if record else None

    @abstractmethod
    def list_recent(self, limit: int) -> list[ListedFace]:
        """Return up to ``limit`` records, newest first."""

    @abstractmethod
    def delete(self, face_id: str) -> bool:
        """Delete a record; False when it did not exist."""

    @abstractmethod
    def search(
        self, embedding: npt.NDArray[np.float32], top_k: int
    ) -> list[SearchHit]:
        """Return at most ``top_k`` hits by ascending cosine distance."""

    @abstractmethod
    def count(self) -> int:
        pass

    def initialize(self) -> None:
        """Prepare the backing storage (schema, extensions). Idempotent."""

    def close(self) -> None:
        """Release connections."""
