"""
Embedding comparison and ranking.

All math runs in float64. Zero vectors give NaN cosine values, which are
propagated as-is. Nearest-neighbour search is normally delegated to the
store; `rank_by_cosine_distance` is the reference ordering every store must
reproduce: ascending cosine distance, at most ``top_k`` hits, each reporting
``cosine = 1 - distance``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from numbers import Real
from typing import Any

import numpy as np
import numpy.typing as npt

from .exceptions import EmbeddingDimensionError, ValidationError


@dataclass(frozen=True)
class SearchHit:
    """One ranked search result."""

    id: str
    cosine: float

    def as_dict(self) -> dict[str, object]:
        return {"id": self.id, "cosine": self.cosine}


def _as_pair(
    a: npt.ArrayLike, b: npt.ArrayLike
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise EmbeddingDimensionError(
            f"Embedding dimensions must match ({va.size} != {vb.size})"
        )
    return va, vb


def cosine_similarity(a: npt.ArrayLike, b: npt.ArrayLike) -> float:
    va, vb = _as_pair(a, b)
    dot = np.dot(va, vb)
    denom = np.sqrt(np.dot(va, va)) * np.sqrt(np.dot(vb, vb))
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(dot / denom)


def euclidean_distance(a: npt.ArrayLike, b: npt.ArrayLike) -> float:
    va, vb = _as_pair(a, b)
    diff = va - vb
    return math.sqrt(float(np.dot(diff, diff)))


def cosine_distance(a: npt.ArrayLike, b: npt.ArrayLike) -> float:
    return 1.0 - cosine_similarity(a, b)


def validate_top_k(value: Any) -> int:
    """Validate a ``top_k`` request value and return the row limit.

    Accepts ints, floats and numeric strings. Missing, boolean, non-numeric,
    non-finite, zero and negative values raise `ValidationError`. Fractional
    values are floored so that no more than ``value`` rows are returned.
    """
    if value is None:
        raise ValidationError("Missing params")
    if isinstance(value, bool):
        raise ValidationError("Invalid top_k")

    if isinstance(value, Real):
        try:
            number = float(value)
        except OverflowError:
            raise ValidationError("Invalid top_k") from None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError("Invalid top_k") from None
    else:
        raise ValidationError("Invalid top_k")

    if not math.isfinite(number) or number <= 0:
        raise ValidationError("Invalid top_k")
    return int(math.floor(number))


def rank_by_cosine_distance(
    query: npt.ArrayLike,
    candidates: Iterable[tuple[str, npt.ArrayLike]],
    top_k: int,
) -> list[SearchHit]:
    """Rank ``(id, embedding)`` pairs by ascending cosine distance to ``query``.

    The sort is stable, so equal distances keep candidate order. NaN
    distances (zero vectors) sort last.
    """
    if top_k <= 0:
        return []

    scored: list[tuple[bool, float, int, str]] = []
    for position, (item_id, embedding) in enumerate(candidates):
        distance = cosine_distance(query, embedding)
        is_nan = math.isnan(distance)
        scored.append((is_nan, 0.0 if is_nan else distance, position, item_id))

    scored.sort()
    hits: list[SearchHit] = []
    for is_nan, distance, _, item_id in scored[:top_k]:
        hits.append(SearchHit(id=item_id, cosine=math.nan if is_nan else 1.0 - distance))
    return hits

