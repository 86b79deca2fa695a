from .face_model import FaceModelManager
from .face_service import FaceSearchService

__all__ = ["FaceModelManager", "FaceSearchService"]
