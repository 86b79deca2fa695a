"""
Exception Definitions for Face Search

Each failure the pipeline, store or service can raise belongs to exactly one
`ErrorKind`. The HTTP layer maps kinds to status codes.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error kinds surfaced to callers."""

    VALIDATION = "validation_error"
    NO_FACE_DETECTED = "no_face_detected"
    MODEL_NOT_INITIALIZED = "model_not_initialized"
    DECODE = "decode_error"
    NOT_FOUND = "not_found"
    INTERNAL = "internal_error"


class FaceSearchError(Exception):
    """Base class for all face-search errors."""

    kind: ErrorKind = ErrorKind.INTERNAL


class ValidationError(FaceSearchError):
    """Raised when request parameters are missing or invalid."""

    kind = ErrorKind.VALIDATION


class NoFaceDetectedError(FaceSearchError):
    """Raised when the detector finds no acceptable face candidate."""

    kind = ErrorKind.NO_FACE_DETECTED

    def __init__(self, message: str = "no_face_detected"):
        super().__init__(message)


class ModelNotInitializedError(FaceSearchError):
    """Raised when a model is used before startup initialization finished."""

    kind = ErrorKind.MODEL_NOT_INITIALIZED


class DecodeError(FaceSearchError):
    """Raised when image bytes cannot be decoded."""

    kind = ErrorKind.DECODE


class NotFoundError(FaceSearchError):
    """Raised when a stored face record does not exist."""

    kind = ErrorKind.NOT_FOUND


class InternalError(FaceSearchError):
    """Raised for any other failure; details are logged, never returned."""

    kind = ErrorKind.INTERNAL


class InferenceError(InternalError):
    """Raised when an inference call fails."""

    pass


class ModelLoadingError(InternalError):
    """Raised when model loading fails."""

    pass


class EmbeddingDimensionError(InternalError):
    """Raised when two embeddings of different length are compared."""

    pass


class StoreError(InternalError):
    """Raised when the persistent store fails."""

    pass


class ConfigError(Exception):
    """Raised when configuration is invalid or malformed."""

    pass


class ResourceNotFoundError(Exception):
    """Raised when model files cannot be found on disk."""

    pass
