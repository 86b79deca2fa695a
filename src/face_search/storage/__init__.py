"""Face store implementations."""

from __future__ import annotations

from ..config import StorageBackend, StorageSettings
from .base import FaceRecord, FaceStore, ListedFace
from .memory_store import InMemoryFaceStore


def create_store(settings: StorageSettings) -> FaceStore:
    """Build the configured face store. The caller must call `initialize()`."""
    if settings.backend == StorageBackend.MEMORY:
        return InMemoryFaceStore(embedding_dim=settings.embedding_dim)

    from .pgvector_store import PgVectorFaceStore

    return PgVectorFaceStore(
        database_url=settings.database_url,
        embedding_dim=settings.embedding_dim,
        table_name=settings.table_name,
        echo=settings.echo_sql,
    )


__all__ = [
    "FaceRecord",
    "FaceStore",
    "ListedFace",
    "InMemoryFaceStore",
    "create_store",
]
