"""
Face Search Service.

Detects whether an image contains a face, turns it into an embedding and
stores, compares and searches those embeddings over HTTP.

Features:
- SCRFD multi-stride face presence test
- ArcFace embedding extraction
- Cosine / Euclidean comparison and cosine nearest-neighbour search
- pgvector (PostgreSQL) or in-memory face store
- ONNX Runtime inference on CPU, CUDA, CoreML, DirectML or OpenVINO
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("face-search")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"

from .cli import main

__all__ = ["main", "__version__"]
