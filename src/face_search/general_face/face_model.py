"""
Face Model Manager for Face Search.

This module ties the image normalizer, the SCRFD presence decoder and the
ArcFace recognizer together on top of a `FaceModelBackend`.
"""

from __future__ import annotations

import logging
import time

import numpy as np
import numpy.typing as npt

from ..backends.base import BackendInfo, FaceModelBackend
from ..config import ModelSettings
from ..detection.scrfd import DecoderSpec, contains_face
from ..exceptions import (
    FaceSearchError,
    InferenceError,
    ModelLoadingError,
    ModelNotInitializedError,
    NoFaceDetectedError,
)
from ..preprocessing import decode_image, to_planar_tensor

logger = logging.getLogger(__name__)


class FaceModelManager:
    """High-level interface for face-presence checks and embedding extraction.

    The manager is stateless between calls: every method is a function of its
    input plus the backend's read-only model handles, so one instance can be
    shared across request threads.

    Key capabilities:
    - Face presence test on the 640x640 detector input
    - Embedding extraction from the 112x112 recognizer input
    - Combined "gate then embed" used by store, compare and search

    Example:
        ```python
        manager = FaceModelManager(backend, settings)
        manager.initialize()

        embedding = manager.prepare_embedding(image_bytes)
        ```

    Note:
        The whole image is resized for the recognizer; the detector acts only
        as a gate and its geometry is not used for cropping.
    """

    def __init__(
        self, backend: FaceModelBackend, settings: ModelSettings | None = None
    ):
        self._backend: FaceModelBackend = backend
        self.settings: ModelSettings = settings or ModelSettings()
        self.decoder_spec = DecoderSpec.from_settings(self.settings.detection)
        self._load_time: float | None = None

    @property
    def is_initialized(self) -> bool:
        return self._backend.is_initialized()

    def initialize(self) -> None:
        """Load both models through the backend. Idempotent."""
        if self._backend.is_initialized():
            logger.info("Face models already initialized.")
            return

        t0 = time.time()
        logger.info("Initializing face models...")
        try:
            self._backend.initialize()
        except ModelLoadingError:
            raise
        except Exception as e:
            raise ModelLoadingError(f"Model initialization failed: {e}") from e
        self._load_time = time.time() - t0
        logger.info(f"✅ Face models initialized in {self._load_time:.2f}s")

    def _require_ready(self) -> None:
        if not self._backend.is_initialized():
            raise ModelNotInitializedError("Face models not initialized")

    # ------------------------------------------------------------------ #
    # Detection path
    # ------------------------------------------------------------------ #

    def detect_face_in_tensor(self, tensor: npt.NDArray[np.float32]) -> bool:
        """Run the detector on a normalized (3, 640, 640) tensor and decode presence."""
        outputs = self._backend.run_detector(tensor)
        return contains_face(outputs, self.decoder_spec)

    def _detect_rgb(self, rgb: npt.NDArray[np.uint8]) -> bool:
        tensor = to_planar_tensor(rgb, self.settings.detection.input_size)
        return self.detect_face_in_tensor(tensor)

    # ------------------------------------------------------------------ #
    # Embedding path
    # ------------------------------------------------------------------ #

    def extract_embedding(
        self, tensor: npt.NDArray[np.float32]
    ) -> npt.NDArray[np.float32]:
        """Run the recognizer on a normalized (3, 112, 112) tensor.

        Returns:
            The first recognizer output flattened to 1-D float32. No L2
            normalization is applied.
        """
        outputs = self._backend.run_recognizer(tensor)
        if not outputs:
            raise InferenceError("Recognizer returned no outputs")
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)

    def _embed_rgb(self, rgb: npt.NDArray[np.uint8]) -> npt.NDArray[np.float32]:
        tensor = to_planar_tensor(rgb, self.settings.recognition.input_size)
        return self.extract_embedding(tensor)

    def prepare_embedding(self, image_bytes: bytes) -> npt.NDArray[np.float32]:
        """Decode once, require a face, then embed the whole image.

        Raises:
            DecodeError: If the bytes are not a supported image.
            NoFaceDetectedError: If the detector finds no acceptable anchor.
            ModelNotInitializedError: If called before `initialize()`.
        """
        self._require_ready()
        rgb = decode_image(image_bytes)
        if not self._detect_rgb(rgb):
            raise NoFaceDetectedError()
        return self._embed_rgb(rgb)

    # ------------------------------------------------------------------ #
    # Info
    # ------------------------------------------------------------------ #

    def get_runtime_info(self) -> BackendInfo:
        return self._backend.get_runtime_info()

    def info(self) -> dict[str, object]:
        """Model status for health reporting."""
        data: dict[str, object] = {
            "is_initialized": self.is_initialized,
            "load_time": self._load_time,
        }
        if self.is_initialized:
            try:
                data["backend"] = self.get_runtime_info().as_dict()
            except FaceSearchError as e:
                logger.warning(f"Could not read backend info: {e}")
        return data

    def __repr__(self) -> str:
        return (
            f"FaceModelManager(backend={type(self._backend).__name__}, "
            f"initialized={self.is_initialized})"
        )
