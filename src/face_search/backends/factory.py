"""
Backend factory for creating inference backend instances based on configuration.

Backends are registered lazily so that a runtime's dependencies are only
imported when that runtime is actually available.
"""

from __future__ import annotations

import importlib.util
import logging

from ..config import ModelSettings
from ..resources.loader import ModelResources
from .base import FaceModelBackend

logger = logging.getLogger(__name__)


class RuntimeKind:
    """Runtime kinds for inference backends."""

    ONNXRT = "onnxrt"


# Global registry for backends
_BACKEND_REGISTRY: dict[str, type[FaceModelBackend]] = {}


def register_backend(kind: str, backend_class: type[FaceModelBackend]) -> None:
    """Register a backend class for a given runtime kind."""
    _BACKEND_REGISTRY[kind] = backend_class


def get_available_backends() -> list[str]:
    """Get a list of available runtime kinds."""
    available = []

    if importlib.util.find_spec("onnxruntime") is not None:
        from .onnxrt_backend import ONNXRTBackend

        register_backend(RuntimeKind.ONNXRT, ONNXRTBackend)
        available.append(RuntimeKind.ONNXRT)

    return available


def create_backend(
    settings: ModelSettings, resources: ModelResources
) -> FaceModelBackend:
    """
    Create an inference backend for the configured runtime.

    Args:
        settings: Model settings (runtime, device, providers, input names).
        resources: Resolved model file locations.

    Returns:
        An uninitialized backend instance.

    Raises:
        ValueError: If the specified runtime is not available.
    """
    get_available_backends()

    runtime = settings.runtime.value.lower()
    if runtime == "onnx":
        runtime = RuntimeKind.ONNXRT

    backend_class = _BACKEND_REGISTRY.get(runtime)
    if backend_class is None:
        available = list(_BACKEND_REGISTRY.keys())
        raise ValueError(
            f"Runtime '{settings.runtime.value}' is not available. Available runtimes: {available}"
        )

    logger.info(f"Creating {backend_class.__name__} (device: {settings.device})")
    return backend_class(
        resources=resources,
        settings=settings,
        providers=settings.onnx_providers,
        device_preference=settings.device,
    )
