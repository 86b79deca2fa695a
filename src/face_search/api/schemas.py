"""Request and response models for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StoreEmbeddingRequest(BaseModel):
    """Path of the image to embed and store."""

    model_config = ConfigDict(extra="allow")

    # Typed loosely so a missing or non-string value reaches the service,
    # which answers with the operation's own message.
    image_path: Any = None


class CompareRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    image_path_a: Any = Field(default=None, alias="image_path_A")
    image_path_b: Any = Field(default=None, alias="image_path_B")


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    image_path: Any = None
    top_k: Any = None


class StoreEmbeddingResponse(BaseModel):
    id: str


class CompareResponse(BaseModel):
    """Similarity of two faces. NaN values (zero embeddings) are sent as null."""

    cosine: float | None
    euclidean: float | None


class SearchHitResponse(BaseModel):
    id: str
    cosine: float | None


class ListedFaceResponse(BaseModel):
    id: str
    created_at: str


class ImageResponse(BaseModel):
    image_base64: str
    saved_to: str


class DeleteResponse(BaseModel):
    deleted_id: str


class HealthResponse(BaseModel):
    status: str
    version: str
    models_ready: bool
