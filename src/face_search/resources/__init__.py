from .loader import ModelResources, ResourceLoader

__all__ = ["ModelResources", "ResourceLoader"]
