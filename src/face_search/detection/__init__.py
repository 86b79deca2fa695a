from .scrfd import (
    DecoderSpec,
    DetectionCandidate,
    StrideOutputs,
    contains_face,
    find_first_candidate,
    group_outputs_by_stride,
    sigmoid,
)

__all__ = [
    "DecoderSpec",
    "DetectionCandidate",
    "StrideOutputs",
    "contains_face",
    "find_first_candidate",
    "group_outputs_by_stride",
    "sigmoid",
]
