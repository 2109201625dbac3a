"""Monotonic clamping of utilization within data segments."""
from __future__ import annotations

import numpy as np

from headroom.segments import SegmentedSeries

__all__ = ["running_max", "smooth_runs"]


def running_max(values: np.ndarray) -> np.ndarray:
    """Clamp every value up to the maximum seen so far."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr.copy()
    return np.maximum.accumulate(arr)


def smooth_runs(segmented: SegmentedSeries) -> SegmentedSeries:
    """Apply :func:`running_max` to each run independently.

    Utilization only climbs inside a quota window, so dips below the running
    maximum are API noise. Runs never span a reset, which keeps true resets intact.
    """
    if segmented.is_empty:
        return segmented
    out = segmented.utilization.astype(np.float64, copy=True)
    for run in segmented.runs:
        out[run.as_slice()] = running_max(out[run.as_slice()])
    return segmented.with_utilization(out)
