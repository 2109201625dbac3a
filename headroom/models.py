"""Value types shared by the chart engine: samples, rollups and small enums."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

import numpy as np

__all__ = [
    "MINUTE_MS",
    "HOUR_MS",
    "DAY_MS",
    "Series",
    "Resolution",
    "TimeRange",
    "HeadroomState",
    "Sample",
    "Rollup",
    "series_arrays",
    "valid_utilization_mask",
]

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class Series(Enum):
    """Quota windows tracked by the usage API."""

    FIVE_HOUR = "five_hour"
    SEVEN_DAY = "seven_day"

    @property
    def label(self) -> str:
        return _SERIES_LABELS[self]


_SERIES_LABELS = {
    Series.FIVE_HOUR: "5h",
    Series.SEVEN_DAY: "7d",
}

# (utilization attribute, reset timestamp attribute) on Sample
_SERIES_SAMPLE_FIELDS = {
    Series.FIVE_HOUR: ("utilization", "window_reset_at"),
    Series.SEVEN_DAY: ("seven_day_utilization", "seven_day_reset_at"),
}


class Resolution(Enum):
    """Storage/aggregation granularity, finest first."""

    RAW = "raw"
    FIVE_MIN = "5min"
    HOURLY = "hourly"
    DAILY = "daily"

    @property
    def rank(self) -> int:
        return _RESOLUTION_RANK[self]

    @property
    def period_ms(self) -> int | None:
        """Fixed period length, or ``None`` where the calendar decides (raw, daily)."""
        return _RESOLUTION_PERIOD_MS[self]

    def is_finer_than(self, other: "Resolution") -> bool:
        return self.rank < other.rank


_RESOLUTION_RANK = {
    Resolution.RAW: 0,
    Resolution.FIVE_MIN: 1,
    Resolution.HOURLY: 2,
    Resolution.DAILY: 3,
}

_RESOLUTION_PERIOD_MS = {
    Resolution.RAW: None,
    Resolution.FIVE_MIN: 5 * MINUTE_MS,
    Resolution.HOURLY: HOUR_MS,
    Resolution.DAILY: None,
}


class TimeRange(Enum):
    """Selectable history windows for the analytics chart."""

    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    ALL = "all"

    @property
    def label(self) -> str:
        return _TIME_RANGE_LABELS[self]

    @property
    def description(self) -> str:
        return _TIME_RANGE_DESCRIPTIONS[self]

    @property
    def duration_ms(self) -> int | None:
        return _TIME_RANGE_DURATIONS[self]

    @property
    def bar_resolution(self) -> Resolution:
        """Resolution the range is charted at; ``RAW`` means a step-area line chart."""
        return _TIME_RANGE_RESOLUTIONS[self]

    def start_timestamp(self, now_ms: int) -> int:
        duration = self.duration_ms
        if duration is None:
            return 0
        return int(now_ms) - duration

    @classmethod
    def from_label(cls, text: str) -> "TimeRange":
        key = str(text).strip().lower()
        for member in cls:
            if key in (member.value, member.label.lower(), member.name.lower()):
                return member
        raise ValueError(f"unknown time range: {text!r}")


_TIME_RANGE_LABELS = {
    TimeRange.DAY: "24h",
    TimeRange.WEEK: "7d",
    TimeRange.MONTH: "30d",
    TimeRange.ALL: "All",
}

_TIME_RANGE_DESCRIPTIONS = {
    TimeRange.DAY: "Last 24 hours",
    TimeRange.WEEK: "Last 7 days",
    TimeRange.MONTH: "Last 30 days",
    TimeRange.ALL: "All time",
}

_TIME_RANGE_DURATIONS = {
    TimeRange.DAY: DAY_MS,
    TimeRange.WEEK: 7 * DAY_MS,
    TimeRange.MONTH: 30 * DAY_MS,
    TimeRange.ALL: None,
}

_TIME_RANGE_RESOLUTIONS = {
    TimeRange.DAY: Resolution.RAW,
    TimeRange.WEEK: Resolution.HOURLY,
    TimeRange.MONTH: Resolution.DAILY,
    TimeRange.ALL: Resolution.DAILY,
}


class HeadroomState(Enum):
    NORMAL = "normal"
    CAUTION = "caution"
    WARNING = "warning"
    CRITICAL = "critical"
    EXHAUSTED = "exhausted"
    DISCONNECTED = "disconnected"

    @classmethod
    def from_utilization(cls, utilization: float | None) -> "HeadroomState":
        """Derive the state from a utilization percentage (headroom = 100 - utilization)."""
        if utilization is None or not np.isfinite(utilization):
            return cls.DISCONNECTED
        headroom = 100.0 - float(utilization)
        if headroom <= 0:
            return cls.EXHAUSTED
        if headroom < 5:
            return cls.CRITICAL
        if headroom < 20:
            return cls.WARNING
        if headroom <= 40:
            return cls.CAUTION
        return cls.NORMAL


@dataclass(frozen=True)
class Sample:
    """One poll of the usage API.

    ``utilization`` and ``window_reset_at`` describe the five-hour window; the
    seven-day pair is optional. Timestamps are Unix milliseconds.
    """

    timestamp: int
    utilization: float | None = None
    window_reset_at: int | None = None
    seven_day_utilization: float | None = None
    seven_day_reset_at: int | None = None

    def utilization_for(self, series: Series) -> float | None:
        return getattr(self, _SERIES_SAMPLE_FIELDS[series][0])

    def reset_at_for(self, series: Series) -> int | None:
        return getattr(self, _SERIES_SAMPLE_FIELDS[series][1])


@dataclass(frozen=True)
class Rollup:
    """Pre-aggregated usage for one storage period ``[period_start, period_end)``."""

    period_start: int
    period_end: int
    resolution: Resolution
    five_hour_avg: float | None = None
    five_hour_peak: float | None = None
    five_hour_min: float | None = None
    seven_day_avg: float | None = None
    seven_day_peak: float | None = None
    seven_day_min: float | None = None
    reset_count: int = 0


def valid_utilization_mask(values: np.ndarray) -> np.ndarray:
    """True where a utilization value is present and inside [0, 100]."""
    values = np.asarray(values, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        return np.isfinite(values) & (values >= 0.0) & (values <= 100.0)


def series_arrays(
    samples: Sequence[Sample] | Iterable[Sample],
    series: Series = Series.FIVE_HOUR,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(timestamps, utilization, reset_at)`` arrays for one series.

    Missing utilization and reset timestamps become NaN. Timestamps are
    int64; the other two are float64 (epoch milliseconds are exact in float64).
    """

    util_field, reset_field = _SERIES_SAMPLE_FIELDS[series]
    rows = list(samples)
    n = len(rows)
    t = np.empty(n, dtype=np.int64)
    u = np.full(n, np.nan, dtype=np.float64)
    r = np.full(n, np.nan, dtype=np.float64)
    for i, sample in enumerate(rows):
        t[i] = int(sample.timestamp)
        util = getattr(sample, util_field)
        if util is not None:
            u[i] = float(util)
        reset_at = getattr(sample, reset_field)
        if reset_at is not None:
            r[i] = float(reset_at)
    return t, u, r
