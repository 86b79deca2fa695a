"""FastAPI application for the face-search service."""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..exceptions import ErrorKind, FaceSearchError
from ..general_face.face_service import FaceSearchService
from .schemas import (
    CompareRequest,
    CompareResponse,
    DeleteResponse,
    HealthResponse,
    ImageResponse,
    ListedFaceResponse,
    SearchHitResponse,
    SearchRequest,
    StoreEmbeddingRequest,
    StoreEmbeddingResponse,
)

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NO_FACE_DETECTED: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.MODEL_NOT_INITIALIZED: 500,
    ErrorKind.DECODE: 500,
    ErrorKind.INTERNAL: 500,
}

INTERNAL_ERROR_MESSAGE = "internal error"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _finite_or_none(value: float) -> float | None:
    return None if math.isnan(value) else value


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FaceSearchError)
    async def face_search_error_handler(
        request: Request, exc: FaceSearchError
    ) -> JSONResponse:
        status_code = _STATUS_BY_KIND.get(exc.kind, 500)
        if exc.kind == ErrorKind.VALIDATION:
            return _error(status_code, str(exc))
        if exc.kind == ErrorKind.NO_FACE_DETECTED:
            return _error(status_code, ErrorKind.NO_FACE_DETECTED.value)
        if exc.kind == ErrorKind.NOT_FOUND:
            return _error(status_code, "not found")

        logger.error(
            f"{request.method} {request.url.path} failed ({exc.kind.value}): {exc}",
            exc_info=exc,
        )
        return _error(status_code, INTERNAL_ERROR_MESSAGE)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.debug(f"Rejected request body for {request.url.path}: {exc.errors()}")
        return _error(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc}", exc_info=exc
        )
        return _error(500, INTERNAL_ERROR_MESSAGE)


def create_app(service: FaceSearchService) -> FastAPI:
    """Create the FastAPI application around an existing service.

    Route handlers are plain functions, so FastAPI runs them in its worker
    thread pool and requests are served in parallel.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting face-search API")
        if not service.is_initialized:
            service.initialize()
        yield
        logger.info("Shutting down face-search API")
        service.close()

    app = FastAPI(
        title="Face Search API",
        description="Store, compare and search face embeddings",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    _register_exception_handlers(app)

    @app.post("/store_embedding", response_model=StoreEmbeddingResponse)
    def store_embedding(
        body: StoreEmbeddingRequest | None = Body(default=None),
    ):
        """Embed an image file and persist it."""
        body = body or StoreEmbeddingRequest()
        face_id = service.store_embedding(body.image_path)
        return StoreEmbeddingResponse(id=face_id)

    @app.post("/compare", response_model=CompareResponse)
    def compare(body: CompareRequest | None = Body(default=None)):
        """Cosine similarity and Euclidean distance between two faces."""
        body = body or CompareRequest()
        result = service.compare(body.image_path_a, body.image_path_b)
        return CompareResponse(
            cosine=_finite_or_none(result.cosine),
            euclidean=_finite_or_none(result.euclidean),
        )

    @app.post("/search", response_model=list[SearchHitResponse])
    def search(body: SearchRequest | None = Body(default=None)):
        """Nearest stored faces by cosine distance."""
        body = body or SearchRequest()
        hits = service.search(body.image_path, body.top_k)
        return [
            SearchHitResponse(id=hit.id, cosine=_finite_or_none(hit.cosine))
            for hit in hits
        ]

    @app.get("/list", response_model=list[ListedFaceResponse])
    def list_faces(limit: str | None = None):
        """Most recently stored faces first."""
        return [
            ListedFaceResponse(**item.as_dict()) for item in service.list_faces(limit)
        ]

    @app.get("/image/{face_id}", response_model=ImageResponse)
    def get_image(face_id: str):
        staged = service.get_image(face_id)
        return ImageResponse(**staged.as_dict())

    @app.delete("/item/{face_id}", response_model=DeleteResponse)
    def delete_item(face_id: str):
        return DeleteResponse(deleted_id=service.delete(face_id))

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint."""
        return HealthResponse(**service.health())

    return app
