"""
SCRFD face-presence decoder.

The detector emits, for every stride level, a score tensor of shape
(anchors, 1) holding raw logits and a bbox tensor of shape (anchors, 4)
holding (left, top, right, bottom) distances from the anchor centre in
stride units. Output names and ordering differ between exports, so tensors
are matched to strides by their anchor count instead of by position.

This module answers a single question: is there at least one face-like
region. It is a predicate, not a detector: geometry is discarded as soon as
one anchor passes the filters. Anything that needs boxes must be built as a
separate capability rather than by widening this contract.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..config import DetectionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecoderSpec:
    """Anchor layout and acceptance filters for the SCRFD decoder."""

    input_size: int = 640
    strides: tuple[int, ...] = (8, 16, 32)
    anchors_per_location: int = 2
    confidence_threshold: float = 0.5
    min_face_size: float = 20.0
    max_face_size: float = 640.0
    min_aspect_ratio: float = 0.25
    max_aspect_ratio: float = 4.0

    @classmethod
    def from_settings(cls, settings: DetectionSettings) -> DecoderSpec:
        return cls(
            input_size=settings.input_size,
            strides=tuple(settings.strides),
            anchors_per_location=settings.anchors_per_location,
            confidence_threshold=settings.confidence_threshold,
            min_face_size=settings.min_face_size,
            max_face_size=settings.effective_max_face_size,
            min_aspect_ratio=settings.min_aspect_ratio,
            max_aspect_ratio=settings.max_aspect_ratio,
        )

    def expected_anchors(self, stride: int) -> float:
        feat_size = self.input_size / stride
        return feat_size * feat_size * self.anchors_per_location


@dataclass
class StrideOutputs:
    """Score logits and bbox distances that belong to one stride level."""

    scores: npt.NDArray[np.float32] | None = None  # (anchors,)
    bboxes: npt.NDArray[np.float32] | None = None  # (anchors, 4)

    @property
    def complete(self) -> bool:
        return self.scores is not None and self.bboxes is not None


@dataclass(frozen=True)
class DetectionCandidate:
    """First anchor that passed every filter; distances are in pixels."""

    stride: int
    anchor_index: int
    probability: float
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.left + self.right

    @property
    def height(self) -> float:
        return self.top + self.bottom

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def sigmoid(logits: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Logistic function in float64; very negative logits saturate to 0."""
    values = np.asarray(logits, dtype=np.float64)
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-values))


def group_outputs_by_stride(
    outputs: Mapping[str, npt.ArrayLike] | Iterable[npt.ArrayLike],
    spec: DecoderSpec,
) -> dict[int, StrideOutputs]:
    """Build the stride -> {scores, bboxes} table from unlabeled outputs.

    Only rank-2 tensors are considered. A tensor belongs to the first stride
    (in configured order) whose expected anchor count equals its row count;
    one channel means scores, four channels means bboxes. Everything else,
    including landmark heads, is ignored.
    """
    tensors = outputs.values() if isinstance(outputs, Mapping) else outputs
    grouped: dict[int, StrideOutputs] = {}

    for tensor in tensors:
        array = np.asarray(tensor)
        if array.ndim != 2:
            continue
        num_anchors, channels = array.shape

        for stride in spec.strides:
            if num_anchors != spec.expected_anchors(stride):
                continue

            entry = grouped.setdefault(stride, StrideOutputs())
            if channels == 1:
                entry.scores = array[:, 0]
            elif channels == 4:
                entry.bboxes = array
            break

    return grouped


def find_first_candidate(
    grouped: Mapping[int, StrideOutputs], spec: DecoderSpec
) -> DetectionCandidate | None:
    """Return the first accepted anchor in (stride ascending, anchor index) order."""
    for stride in sorted(spec.strides):
        entry = grouped.get(stride)
        if entry is None or not entry.complete:
            continue

        scores = np.asarray(entry.scores, dtype=np.float64).reshape(-1)
        bboxes = np.asarray(entry.bboxes, dtype=np.float64).reshape(-1, 4)
        count = min(len(scores), len(bboxes))
        if count == 0:
            continue

        probs = sigmoid(scores[:count])
        distances = bboxes[:count] * float(stride)
        left, top, right, bottom = distances.T
        width = left + right
        height = top + bottom
        with np.errstate(divide="ignore", invalid="ignore"):
            aspect = width / height

        mask = (
            (probs >= spec.confidence_threshold)
            & np.all(distances > 0, axis=1)
            & (width >= spec.min_face_size)
            & (height >= spec.min_face_size)
            & (width <= spec.max_face_size)
            & (height <= spec.max_face_size)
            & (aspect >= spec.min_aspect_ratio)
            & (aspect <= spec.max_aspect_ratio)
        )
        hits = np.flatnonzero(mask)
        if hits.size == 0:
            continue

        idx = int(hits[0])
        return DetectionCandidate(
            stride=stride,
            anchor_index=idx,
            probability=float(probs[idx]),
            left=float(left[idx]),
            top=float(top[idx]),
            right=float(right[idx]),
            bottom=float(bottom[idx]),
        )

    return None


def contains_face(
    outputs: Mapping[str, npt.ArrayLike] | Iterable[npt.ArrayLike],
    spec: DecoderSpec,
) -> bool:
    """True when at least one anchor passes the score, geometry and shape filters."""
    grouped = group_outputs_by_stride(outputs, spec)
    if not grouped:
        logger.debug("No detector output matched a stride level")
        return False

    candidate = find_first_candidate(grouped, spec)
    if candidate is None:
        logger.debug(
            "No anchor accepted (strides with outputs: %s)", sorted(grouped.keys())
        )
        return False

    logger.debug(
        "Face accepted at stride=%d anchor=%d prob=%.4f size=%.1fx%.1f",
        candidate.stride,
        candidate.anchor_index,
        candidate.probability,
        candidate.width,
        candidate.height,
    )
    return True
