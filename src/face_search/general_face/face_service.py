"""
face_service.py

The face-search service: six operations over the face pipeline and a face
store, independent of any transport.

  - store_embedding: gate + embed an image file and persist it.
  - compare: cosine similarity and Euclidean distance between two images.
  - search: nearest stored faces by cosine distance.
  - list_faces / get_image / delete: record management.

Every failure is raised as a `FaceSearchError` subclass; the HTTP layer maps
the error kind to a status code.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import re
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..backends import create_backend
from ..config import FaceSearchConfig, ServerSettings
from ..exceptions import InternalError, NotFoundError, ValidationError
from ..resources.loader import ResourceLoader
from ..similarity import (
    SearchHit,
    cosine_similarity,
    euclidean_distance,
    validate_top_k,
)
from ..storage import FaceStore, ListedFace, create_store
from .face_model import FaceModelManager

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?)0*(\d+)")

_MAGIC_EXTENSIONS: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", ".jpg"),
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"BM", ".bmp"),
    (b"II*\x00", ".tif"),
    (b"MM\x00*", ".tif"),
]


def sniff_extension(data: bytes) -> str:
    """Guess a file extension from the leading magic bytes, ``.bin`` if unknown."""
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    for magic, ext in _MAGIC_EXTENSIONS:
        if data.startswith(magic):
            return ext
    return ".bin"


@dataclass(frozen=True)
class CompareResult:
    cosine: float
    euclidean: float

    def as_dict(self) -> dict[str, float]:
        return {"cosine": self.cosine, "euclidean": self.euclidean}


@dataclass(frozen=True)
class StagedImage:
    """A stored image written back to disk for the caller."""

    image_base64: str
    saved_to: str

    def as_dict(self) -> dict[str, str]:
        return {"image_base64": self.image_base64, "saved_to": self.saved_to}


def _parse_limit(value: Any) -> int | None:
    """Leading integer of ``value`` (``"5.5"`` and ``"10abc"`` give 5 and 10).

    Magnitudes are capped at ``sys.maxsize``, the largest SQL ``LIMIT``.
    """
    if isinstance(value, int):
        n = value
    elif isinstance(value, float) and math.isfinite(value):
        n = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match is None:
            return None
        sign, digits = match.groups()
        n = int(digits) if len(digits) <= 18 else sys.maxsize
        if sign == "-":
            n = -n
    else:
        return None
    return max(-sys.maxsize, min(n, sys.maxsize))


def _require_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


class FaceSearchService:
    """Store, compare and search face embeddings.

    The service owns a `FaceModelManager` (detector gate + recognizer) and a
    `FaceStore`. Models and store are prepared once by `initialize()`; every
    operation after that is safe to call from multiple threads.

    Example:
        ```python
        config = load_and_validate_config("face_search.yaml")
        service = FaceSearchService.from_config(config)
        service.initialize()

        face_id = service.store_embedding("alice.jpg")
        hits = service.search("query.jpg", top_k=3)
        ```
    """

    def __init__(
        self,
        model: FaceModelManager,
        store: FaceStore,
        server_settings: ServerSettings | None = None,
    ) -> None:
        self.model = model
        self.store = store
        self.server_settings = server_settings or ServerSettings()
        self.is_initialized = False

    @classmethod
    def from_config(cls, config: FaceSearchConfig) -> FaceSearchService:
        """Build a service from a validated configuration.

        Resolves model files, selects the inference backend and creates the
        configured store. Nothing is loaded until `initialize()`.

        Raises:
            ResourceNotFoundError: If a model file is missing.
            ValueError: If the configured runtime is not available.
        """
        resources = ResourceLoader.load_model_resource(config.models)
        backend = create_backend(config.models, resources)
        model = FaceModelManager(backend=backend, settings=config.models)
        store = create_store(config.storage)
        return cls(model=model, store=store, server_settings=config.server)

    def initialize(self) -> None:
        """Load both models and prepare the store."""
        logger.info("Initializing FaceSearchService...")
        self.model.initialize()
        self.store.initialize()
        self.is_initialized = True
        logger.info(f"FaceSearchService ready ({self.model!r})")

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _read_image_file(image_path: str) -> bytes:
        path = Path(image_path).expanduser()
        try:
            return path.read_bytes()
        except OSError as e:
            raise InternalError(f"Cannot read image file {path}: {e}") from e

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def store_embedding(self, image_path: Any) -> str:
        """Embed the image at ``image_path`` and persist it. Returns the new id."""
        path = _require_text(image_path)
        if path is None:
            raise ValidationError("Missing image_path")

        t0 = time.time()
        data = self._read_image_file(path)
        embedding = self.model.prepare_embedding(data)
        image_base64 = base64.b64encode(data).decode("ascii")
        face_id = self.store.insert(embedding, image_base64)
        logger.info(
            f"Stored face {face_id} from {path} in {(time.time() - t0) * 1000:.1f}ms"
        )
        return face_id

    def compare(self, image_path_a: Any, image_path_b: Any) -> CompareResult:
        """Compare the faces in two image files."""
        path_a = _require_text(image_path_a)
        path_b = _require_text(image_path_b)
        if path_a is None or path_b is None:
            raise ValidationError("Missing images")

        emb_a = self.model.prepare_embedding(self._read_image_file(path_a))
        emb_b = self.model.prepare_embedding(self._read_image_file(path_b))
        return CompareResult(
            cosine=cosine_similarity(emb_a, emb_b),
            euclidean=euclidean_distance(emb_a, emb_b),
        )

    def search(self, image_path: Any, top_k: Any) -> list[SearchHit]:
        """Return at most ``top_k`` stored faces closest to the query image."""
        path = _require_text(image_path)
        if path is None:
            raise ValidationError("Missing params")
        limit = validate_top_k(top_k)

        embedding = self.model.prepare_embedding(self._read_image_file(path))
        return self.store.search(embedding, limit)

    def list_faces(self, limit: Any = None) -> list[ListedFace]:
        """Most recent records first. Bad or negative limits use the default."""
        default = self.server_settings.default_list_limit
        n = _parse_limit(limit)
        if n is None or n < 0:
            n = default
        return self.store.list_recent(n)

    def get_image(self, face_id: str) -> StagedImage:
        """Return the stored image and write a copy under the output directory."""
        image_base64 = self.store.get_image(face_id)
        if image_base64 is None:
            raise NotFoundError("not found")

        try:
            data = base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InternalError(f"Stored image for {face_id} is not valid base64") from e

        output_dir = Path(self.server_settings.output_dir).expanduser()
        target = output_dir / f"{face_id}{sniff_extension(data)}"
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise InternalError(f"Cannot write {target}: {e}") from e

        return StagedImage(image_base64=image_base64, saved_to=str(target.resolve()))

    def delete(self, face_id: str) -> str:
        if not self.store.delete(face_id):
            raise NotFoundError("not found")
        logger.info(f"Deleted face {face_id}")
        return face_id

    def health(self) -> dict[str, object]:
        from .. import __version__

        return {
            "status": "ok",
            "version": __version__,
            "models_ready": self.model.is_initialized,
        }
