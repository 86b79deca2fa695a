from .base import BackendInfo, FaceModelBackend
from .factory import create_backend

__all__ = [
    "FaceModelBackend",
    "BackendInfo",
    "create_backend",
]
