"""
Base Backend for the Face Search pipeline

This module defines the abstract base class for inference backends. A backend
owns the two loaded networks (SCRFD detector and ArcFace recognizer) and
exposes them as plain tensor-in / tensors-out calls. Decoding, normalization
and similarity live outside the backend so that every runtime shares them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from ..exceptions import ModelNotInitializedError


@dataclass
class BackendInfo:
    """Runtime configuration and model metadata for inference backends.

    Attributes:
        runtime: Runtime framework name (e.g., "onnx").
        device: Target device identifier (e.g., "cuda", "cpu").
        detection_model: File name of the loaded detector.
        recognition_model: File name of the loaded recognizer.
        version: Runtime version string.
        face_embedding_dim: Length of the recognizer output, when known.
        load_time: Seconds spent creating both sessions.
        extra: Additional metadata as key-value pairs for extensibility.
    """

    runtime: str
    device: str | None = None
    detection_model: str | None = None
    recognition_model: str | None = None
    version: str | None = None
    face_embedding_dim: int | None = None
    load_time: float | None = None
    extra: dict[str, str | None] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        """Convert to a plain dict (safe for JSON serialization)."""
        return {
            "runtime": self.runtime,
            "device": self.device,
            "detection_model": self.detection_model,
            "recognition_model": self.recognition_model,
            "version": self.version,
            "face_embedding_dim": self.face_embedding_dim,
            "load_time": self.load_time,
            "extra": dict(self.extra),
        }


class FaceModelBackend(ABC):
    """Abstract base class for detector + recognizer inference backends.

    Models are loaded once by `initialize()`; afterwards the backend is
    read-only and may be shared by any number of concurrent requests. Every
    inference method must raise `ModelNotInitializedError` when called before
    `initialize()` completed.
    """

    def __init__(self):
        self._initialized: bool = False

    @abstractmethod
    def initialize(self) -> None:
        """Load both models. Idempotent.

        Raises:
            ModelLoadingError: If a model file is missing or cannot be loaded.
        """
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ModelNotInitializedError("Face models not initialized")

    @abstractmethod
    def get_runtime_info(self) -> BackendInfo:
        pass

    @abstractmethod
    def run_detector(
        self, tensor: npt.NDArray[np.float32]
    ) -> dict[str, npt.NDArray[np.float32]]:
        """Run the detector on a (3, H, W) planar tensor.

        Returns:
            Output tensors keyed by output name. Callers must not rely on the
            ordering or the names; the SCRFD decoder matches them by shape.

        Raises:
            ModelNotInitializedError: If the detector has not been loaded.
            InferenceError: If the runtime call fails.
        """
        self._require_initialized()

    @abstractmethod
    def run_recognizer(
        self, tensor: npt.NDArray[np.float32]
    ) -> list[npt.NDArray[np.float32]]:
        """Run the recognizer on a (3, H, W) planar tensor.

        Returns:
            All output tensors in graph order; the embedding is the first.

        Raises:
            ModelNotInitializedError: If the recognizer has not been loaded.
            InferenceError: If the runtime call fails.
        """
        self._require_initialized()
