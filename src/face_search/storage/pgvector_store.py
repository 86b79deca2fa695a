"""
PostgreSQL + pgvector face store.

Table layout:

    face_embeddings(
        id           uuid primary key,
        embedding    vector(<dim>) not null,
        image_base64 text not null,
        created_at   timestamptz not null default now()
    )

Nearest-neighbour search orders by the ``<=>`` cosine-distance operator and
reports ``1 - distance`` as the similarity.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

import numpy as np
import numpy.typing as npt
from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Engine, Text, create_engine, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from typing_extensions import override

from ..exceptions import EmbeddingDimensionError, StoreError
from ..similarity import SearchHit
from .base import FaceRecord, FaceStore, ListedFace

logger = logging.getLogger(__name__)


def _build_model(table_name: str, embedding_dim: int):
    """Create a mapped class bound to its own metadata.

    Each store owns its registry so that table name and vector width can come
    from configuration.
    """

    class Base(DeclarativeBase):
        pass

    class FaceEmbedding(Base):
        __tablename__ = table_name

        id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
        embedding: Mapped[np.ndarray] = mapped_column(
            Vector(embedding_dim), nullable=False
        )
        image_base64: Mapped[str] = mapped_column(Text, nullable=False)
        created_at: Mapped[datetime] = mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    return Base, FaceEmbedding


def _parse_id(face_id: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(face_id))
    except (ValueError, AttributeError, TypeError):
        return None


class PgVectorFaceStore(FaceStore):
    """Face store backed by a pgvector-enabled PostgreSQL database."""

    def __init__(
        self,
        database_url: str,
        embedding_dim: int = 512,
        table_name: str = "face_embeddings",
        echo: bool = False,
        engine: Engine | None = None,
    ):
        self.embedding_dim = embedding_dim
        self.table_name = table_name
        self._engine = engine or create_engine(
            database_url, echo=echo, pool_pre_ping=True
        )
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        self._base, self._model = _build_model(table_name, embedding_dim)

    def _session(self) -> Session:
        return self._sessions()

    @override
    def initialize(self) -> None:
        """Enable the vector extension and create the table if absent."""
        try:
            with self._engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                self._base.metadata.create_all(conn)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to initialize face store: {e}") from e
        logger.info(
            f"Face store ready (table={self.table_name}, dim={self.embedding_dim})"
        )

    def _to_vector(self, embedding: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if vector.size != self.embedding_dim:
            raise EmbeddingDimensionError(
                f"Expected {self.embedding_dim}-dim embedding, got {vector.size}"
            )
        return vector

    @override
    def insert(self, embedding: npt.NDArray[np.float32], image_base64: str) -> str:
        row = self._model(
            id=uuid.uuid4(),
            embedding=self._to_vector(embedding),
            image_base64=image_base64,
        )
        try:
            with self._session() as session, session.begin():
                session.add(row)
        except SQLAlchemyError as e:
            raise StoreError(f"Insert failed: {e}") from e
        return str(row.id)

    @override
    def get(self, face_id: str) -> FaceRecord | None:
        key = _parse_id(face_id)
        if key is None:
            return None
        try:
            with self._session() as session:
                row = session.get(self._model, key)
                if row is None:
                    return None
                return FaceRecord(
                    id=str(row.id),
                    embedding=np.asarray(row.embedding, dtype=np.float32),
                    image_base64=row.image_base64,
                    created_at=row.created_at,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup failed: {e}") from e

    @override
    def get_image(self, face_id: str) -> str | None:
        key = _parse_id(face_id)
        if key is None:
            return None
        stmt = select(self._model.image_base64).where(self._model.id == key)
        try:
            with self._session() as session:
                return session.scalar(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Image lookup failed: {e}") from e

    @override
    def list_recent(self, limit: int) -> list[ListedFace]:
        stmt = (
            select(self._model.id, self._model.created_at)
            .order_by(self._model.created_at.desc())
            .limit(limit)
        )
        try:
            with self._session() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StoreError(f"List failed: {e}") from e
        return [ListedFace(id=str(r.id), created_at=r.created_at) for r in rows]

    @override
    def delete(self, face_id: str) -> bool:
        key = _parse_id(face_id)
        if key is None:
            return False
        try:
            with self._session() as session, session.begin():
                row = session.get(self._model, key)
                if row is None:
                    return False
                session.delete(row)
        except SQLAlchemyError as e:
            raise StoreError(f"Delete failed: {e}") from e
        return True

    def search_statement(self, embedding: npt.NDArray[np.float32], top_k: int):
        """SELECT id, embedding <=> :q AS distance ... ORDER BY distance LIMIT :k"""
        distance = self._model.embedding.cosine_distance(self._to_vector(embedding))
        return (
            select(self._model.id, distance.label("distance"))
            .order_by(distance)
            .limit(top_k)
        )

    @override
    def search(
        self, embedding: npt.NDArray[np.float32], top_k: int
    ) -> list[SearchHit]:
        if top_k <= 0:
            return []
        stmt = self.search_statement(embedding, top_k)
        try:
            with self._session() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Search failed: {e}") from e
        return [
            SearchHit(id=str(r.id), cosine=1.0 - float(r.distance)) for r in rows
        ]

    @override
    def count(self) -> int:
        try:
            with self._session() as session:
                return int(
                    session.scalar(select(func.count()).select_from(self._model)) or 0
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Count failed: {e}") from e

    @override
    def close(self) -> None:
        self._engine.dispose()
