"""Proportional mapping from (timestamp, utilization) to drawing coordinates."""
from __future__ import annotations

from typing import Tuple

import numpy as np

__all__ = ["x_position", "y_position", "x_positions", "y_positions"]

TimeSpan = Tuple[int, int]


def x_position(timestamp: int, time_range: TimeSpan, width: float) -> float:
    """
    Map a timestamp onto [0, width].
    Timestamps outside the range clamp to the edges; a zero-duration range maps everything to 0.
    """
    start, end = time_range
    duration = float(end - start)
    if duration <= 0:
        return 0.0
    frac = (float(timestamp) - float(start)) / duration
    return min(max(frac, 0.0), 1.0) * float(width)


def y_position(utilization: float, height: float) -> float:
    """
    Map utilization onto [height, 0]; 100% is the top edge (y=0), 0% the baseline.
    """
    clamped = min(max(float(utilization), 0.0), 100.0)
    return float(height) * (1.0 - clamped / 100.0)


def x_positions(timestamps: np.ndarray, time_range: TimeSpan, width: float) -> np.ndarray:
    t = np.asarray(timestamps, dtype=np.float64)
    start, end = time_range
    duration = float(end - start)
    if duration <= 0:
        return np.zeros(t.shape, dtype=np.float64)
    frac = (t - float(start)) / duration
    np.clip(frac, 0.0, 1.0, out=frac)
    return frac * float(width)


def y_positions(utilization: np.ndarray, height: float) -> np.ndarray:
    u = np.clip(np.asarray(utilization, dtype=np.float64), 0.0, 100.0)
    return float(height) * (1.0 - u / 100.0)
