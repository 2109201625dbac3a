"""Trend classification from the trailing rate of utilization change."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from headroom.models import MINUTE_MS
from headroom.segments import SegmentedSeries

__all__ = [
    "SlopeLevel",
    "SlopeThresholds",
    "DEFAULT_SLOPE_WINDOW_MS",
    "classify_rate",
    "trailing_rates",
    "slope_levels",
]

DEFAULT_SLOPE_WINDOW_MS = 5 * MINUTE_MS


class SlopeLevel(Enum):
    """Rate of consumption. Utilization only rises within a window, so there is no falling level."""

    FLAT = "flat"
    RISING = "rising"
    STEEP = "steep"

    @property
    def arrow(self) -> str:
        return _SLOPE_ARROWS[self]

    @property
    def is_actionable(self) -> bool:
        return _SLOPE_ACTIONABLE[self]


_SLOPE_ARROWS = {
    SlopeLevel.FLAT: "→",
    SlopeLevel.RISING: "↗",
    SlopeLevel.STEEP: "⬆",
}

_SLOPE_ACTIONABLE = {
    SlopeLevel.FLAT: False,
    SlopeLevel.RISING: True,
    SlopeLevel.STEEP: True,
}


@dataclass(frozen=True)
class SlopeThresholds:
    """Boundaries in %/minute: below ``flat`` is flat, above ``steep`` is steep."""

    flat: float = 0.5
    steep: float = 1.5

    def __post_init__(self) -> None:
        if self.steep < self.flat:
            raise ValueError("steep threshold must not be below flat threshold")

    def classify(self, rate: float) -> SlopeLevel:
        if not math.isfinite(rate) or rate < self.flat:
            return SlopeLevel.FLAT
        if rate > self.steep:
            return SlopeLevel.STEEP
        return SlopeLevel.RISING


def classify_rate(rate: float, thresholds: SlopeThresholds | None = None) -> SlopeLevel:
    return (thresholds or SlopeThresholds()).classify(float(rate))


def trailing_rates(
    timestamps: np.ndarray,
    values: np.ndarray,
    *,
    window_ms: int = DEFAULT_SLOPE_WINDOW_MS,
) -> np.ndarray:
    """Per-sample rate of change in %/minute over a trailing time window.

    The rate compares each sample with the earliest sample no more than
    ``window_ms`` older. Samples without earlier history in the window get NaN.
    """
    if window_ms <= 0:
        raise ValueError("window_ms must be positive")
    t = np.asarray(timestamps, dtype=np.int64)
    v = np.asarray(values, dtype=np.float64)
    if t.size != v.size:
        raise ValueError("timestamps and values must have the same length")
    rates = np.full(t.size, np.nan, dtype=np.float64)
    if t.size == 0:
        return rates

    starts = np.searchsorted(t, t - int(window_ms), side="left")
    elapsed = (t - t[starts]).astype(np.float64)
    has_history = elapsed > 0
    np.divide(
        (v - v[starts]) * MINUTE_MS,
        elapsed,
        out=rates,
        where=has_history,
    )
    return rates


def slope_levels(
    segmented: SegmentedSeries,
    *,
    thresholds: SlopeThresholds | None = None,
    window_ms: int = DEFAULT_SLOPE_WINDOW_MS,
) -> list[SlopeLevel]:
    """Slope level for every valid sample, computed within its own run only."""
    thresholds = thresholds or SlopeThresholds()
    levels = [SlopeLevel.FLAT] * int(segmented.timestamps.size)
    for run in segmented.runs:
        rates = trailing_rates(
            segmented.timestamps[run.as_slice()],
            segmented.utilization[run.as_slice()],
            window_ms=window_ms,
        )
        for offset, rate in enumerate(rates):
            levels[run.start + offset] = thresholds.classify(float(rate))
    return levels
