"""
Image normalization for the detector (640x640) and recognizer (112x112) inputs.

Both networks take the same layout: planar float32 R, G, B planes, each
sample mapped with ``(v / 255 - 0.5) / 0.5`` into [-1, 1]. The image is
stretched to the square target; no letterboxing and no face crop.
"""

from __future__ import annotations

import cv2
import numpy as np
import numpy.typing as npt

from .exceptions import DecodeError

DETECTION_INPUT_SIZE = 640
RECOGNITION_INPUT_SIZE = 112

_MEAN = np.float32(0.5)
_STD = np.float32(0.5)


def decode_image(image_bytes: bytes) -> npt.NDArray[np.uint8]:
    """Decode encoded image bytes to an RGB uint8 array of shape (H, W, 3).

    OpenCV decodes to BGR; the channels are swapped here so that plane 0 of
    every tensor built from the result is red. Alpha is dropped and grayscale
    is expanded to three channels.

    Raises:
        DecodeError: If the bytes are empty or not a supported image format.
    """
    if not image_bytes:
        raise DecodeError("image bytes cannot be empty")

    decoded = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)
    if decoded is None:
        raise DecodeError("Failed to decode image bytes")

    return np.ascontiguousarray(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB))


def to_planar_tensor(
    rgb: npt.NDArray[np.uint8], size: int
) -> npt.NDArray[np.float32]:
    """Resize an RGB image to ``size x size`` and return a (3, size, size) tensor."""
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")

    if rgb.shape[0] != size or rgb.shape[1] != size:
        rgb = cv2.resize(rgb, (size, size), interpolation=cv2.INTER_LINEAR)

    normalized = (rgb.astype(np.float32) / np.float32(255.0) - _MEAN) / _STD
    return np.ascontiguousarray(np.transpose(normalized, (2, 0, 1)), dtype=np.float32)


def normalize_image(image_bytes: bytes, size: int) -> npt.NDArray[np.float32]:
    """Decode ``image_bytes`` and build the planar tensor for a ``size`` input."""
    return to_planar_tensor(decode_image(image_bytes), size)
