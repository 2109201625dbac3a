"""Nearest-entry lookups for hover tooltips, free of any GUI imports."""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from headroom.buckets import bucket_midpoint


def _nearest_index(positions: np.ndarray, t: float) -> int | None:
    """Index of the entry in sorted ``positions`` closest to ``t``; ties go left."""

    if positions.size == 0:
        return None
    idx = int(np.searchsorted(positions, t, side="left"))
    if idx <= 0:
        return 0
    if idx >= positions.shape[0]:
        return positions.shape[0] - 1
    left = idx - 1
    right = idx
    if abs(t - positions[left]) <= abs(positions[right] - t):
        return left
    return right


def nearest_point(points: Sequence[Any], t_ms: float) -> Any | None:
    """Return the chart point whose timestamp is closest to ``t_ms``."""

    if not points:
        return None
    stamps = np.asarray([getattr(point, "timestamp") for point in points], dtype=np.float64)
    best = _nearest_index(stamps, float(t_ms))
    return None if best is None else points[best]


def nearest_bucket_index(buckets: Sequence[Any], t_ms: float) -> int | None:
    """Return the index of the bucket whose period midpoint is closest to ``t_ms``."""

    if not buckets:
        return None
    mids = np.asarray([bucket_midpoint(bucket) for bucket in buckets], dtype=np.float64)
    return _nearest_index(mids, float(t_ms))
