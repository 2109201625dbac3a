"""Split ordered usage samples into data/gap runs and step-area path segments."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Sequence, Tuple

import numpy as np

from headroom.coords import x_positions, y_positions
from headroom.models import MINUTE_MS, Sample, Series, series_arrays, valid_utilization_mask

__all__ = [
    "RESET_JITTER_TOLERANCE_MS",
    "RESET_DROP_FALLBACK_PCT",
    "RESET_MARKER_DROP_PCT",
    "MIN_GAP_THRESHOLD_MS",
    "Boundary",
    "ResetPolicy",
    "SampleRun",
    "SegmentedSeries",
    "PathSegment",
    "gap_segment",
    "gap_threshold_ms",
    "is_reset_boundary",
    "reset_boundary_mask",
    "segment_series",
    "path_segments",
    "build_segments",
    "reset_marker_timestamps",
]

LOG = logging.getLogger(__name__)

# The API reports the window reset time with sub-second jitter; a real reset
# moves it by hours.
RESET_JITTER_TOLERANCE_MS = 60_000
RESET_DROP_FALLBACK_PCT = 50.0
RESET_MARKER_DROP_PCT = 10.0
MIN_GAP_THRESHOLD_MS = 5 * MINUTE_MS


def gap_threshold_ms(poll_interval_s: float) -> int:
    """Elapsed time between samples beyond which the chart shows a gap."""
    return max(MIN_GAP_THRESHOLD_MS, int(float(poll_interval_s) * 1000 * 1.5))


class Boundary(Enum):
    GAP = "gap"
    RESET = "reset"


@dataclass(frozen=True)
class ResetPolicy:
    jitter_tolerance_ms: int = RESET_JITTER_TOLERANCE_MS
    drop_fallback_pct: float = RESET_DROP_FALLBACK_PCT


def is_reset_boundary(
    previous: Sample,
    current: Sample,
    *,
    policy: ResetPolicy | None = None,
    series: Series = Series.FIVE_HOUR,
) -> bool:
    """Return True when the quota window reset between two consecutive samples.

    With both reset timestamps present, a shift beyond the jitter tolerance is a
    reset. Otherwise a utilization drop larger than the fallback percentage is.
    """
    policy = policy or ResetPolicy()
    prev_reset = previous.reset_at_for(series)
    curr_reset = current.reset_at_for(series)
    if prev_reset is not None and curr_reset is not None:
        return abs(int(curr_reset) - int(prev_reset)) > policy.jitter_tolerance_ms

    prev_util = previous.utilization_for(series)
    curr_util = current.utilization_for(series)
    if prev_util is None or curr_util is None:
        return False
    return float(prev_util) - float(curr_util) > policy.drop_fallback_pct


def reset_boundary_mask(
    utilization: np.ndarray,
    reset_at: np.ndarray,
    policy: ResetPolicy | None = None,
) -> np.ndarray:
    """Vectorised :func:`is_reset_boundary` over consecutive pairs (length n-1)."""
    policy = policy or ResetPolicy()
    u = np.asarray(utilization, dtype=np.float64)
    r = np.asarray(reset_at, dtype=np.float64)
    if u.size < 2:
        return np.zeros(0, dtype=bool)
    prev_r, curr_r = r[:-1], r[1:]
    both = np.isfinite(prev_r) & np.isfinite(curr_r)
    with np.errstate(invalid="ignore"):
        shifted = np.abs(curr_r - prev_r) > float(policy.jitter_tolerance_ms)
        dropped = (u[:-1] - u[1:]) > float(policy.drop_fallback_pct)
    return (both & shifted) | (~both & dropped)


@dataclass(frozen=True)
class SampleRun:
    """Half-open index range ``[start, stop)`` of one data segment."""

    start: int
    stop: int
    opened_by: Boundary | None = None
    closed_by: Boundary | None = None

    @property
    def size(self) -> int:
        return self.stop - self.start

    def as_slice(self) -> slice:
        return slice(self.start, self.stop)


@dataclass(frozen=True, eq=False)
class SegmentedSeries:
    """Valid samples of one series plus the runs they split into."""

    series: Series
    timestamps: np.ndarray
    utilization: np.ndarray
    reset_at: np.ndarray
    runs: Tuple[SampleRun, ...] = ()

    def __post_init__(self) -> None:
        if not (self.timestamps.shape == self.utilization.shape == self.reset_at.shape):
            raise ValueError("timestamps, utilization and reset_at must have matching shapes")

    @property
    def is_empty(self) -> bool:
        return not self.runs

    @property
    def span(self) -> Tuple[int, int]:
        if self.timestamps.size == 0:
            return (0, 0)
        return int(self.timestamps[0]), int(self.timestamps[-1])

    def with_utilization(self, values: np.ndarray) -> "SegmentedSeries":
        return replace(self, utilization=np.asarray(values, dtype=np.float64))

    def run_index(self) -> np.ndarray:
        """Run ordinal for each valid sample."""
        out = np.zeros(self.timestamps.size, dtype=np.int64)
        for ordinal, run in enumerate(self.runs):
            out[run.as_slice()] = ordinal
        return out


@dataclass(frozen=True, eq=False)
class PathSegment:
    """One drawable piece of the line chart.

    ``x``/``y`` are view coordinates; ``start_ms``/``end_ms`` is the time extent
    the geometry covers. ``duration_ms`` is the span between the first and last
    sample for data segments and the full extent for gaps.
    """

    x: np.ndarray
    y: np.ndarray
    is_gap: bool
    sample_count: int
    duration_ms: int
    start_ms: int
    end_ms: int

    def __post_init__(self) -> None:
        if self.x.shape != self.y.shape:
            raise ValueError("x and y must have matching shapes")

    def __iter__(self):
        yield self.x
        yield self.y

    @property
    def points(self) -> list[tuple[float, float]]:
        return [(float(px), float(py)) for px, py in zip(self.x, self.y)]

    @property
    def first_x(self) -> float:
        return float(self.x[0])

    @property
    def last_x(self) -> float:
        return float(self.x[-1])


def gap_segment(start_x: float, end_x: float, baseline: float, start_ms: int, end_ms: int) -> PathSegment:
    return PathSegment(
        np.array([start_x, end_x], dtype=np.float64),
        np.array([baseline, baseline], dtype=np.float64),
        is_gap=True,
        sample_count=0,
        duration_ms=int(end_ms - start_ms),
        start_ms=int(start_ms),
        end_ms=int(end_ms),
    )


def segment_series(
    samples: Sequence[Sample] | Iterable[Sample],
    *,
    gap_threshold_ms: int,
    series: Series = Series.FIVE_HOUR,
    policy: ResetPolicy | None = None,
) -> SegmentedSeries:
    """Drop invalid samples and split the rest at reset boundaries and gaps.

    A reset boundary is checked before the elapsed-time test, so a reset after
    a long silence starts a new data run without a gap between them.
    """
    t, u, r = series_arrays(samples, series)
    keep = valid_utilization_mask(u)
    t, u, r = t[keep], u[keep], r[keep]

    if t.size < 2 or t[-1] <= t[0]:
        LOG.debug("%s: %d valid samples, nothing to segment", series.value, t.size)
        return SegmentedSeries(series, t, u, r)

    resets = reset_boundary_mask(u, r, policy)
    gaps = ~resets & (np.diff(t) > int(gap_threshold_ms))

    runs: list[SampleRun] = []
    start = 0
    opened: Boundary | None = None
    for idx in np.flatnonzero(resets | gaps):
        stop = int(idx) + 1
        closed = Boundary.RESET if resets[idx] else Boundary.GAP
        runs.append(SampleRun(start, stop, opened, closed))
        start, opened = stop, closed
    runs.append(SampleRun(start, int(t.size), opened, None))

    LOG.debug(
        "%s: %d samples -> %d runs (%d resets, %d gaps)",
        series.value,
        t.size,
        len(runs),
        int(resets.sum()),
        int(gaps.sum()),
    )
    return SegmentedSeries(series, t, u, r, tuple(runs))


def path_segments(
    segmented: SegmentedSeries,
    *,
    size: Tuple[float, float],
    time_range: Tuple[int, int] | None = None,
) -> list[PathSegment]:
    """Render runs as step-area geometry with gap segments between them.

    Each value is held horizontally until the next reading, then steps
    vertically, so a run of N samples yields 2N-1 points. A run closed by a
    reset extends to the reset sample and drops to the baseline; the next run
    rises from the baseline.
    """
    width, height = size
    if width < 0 or height < 0:
        raise ValueError("size must be non-negative")
    if segmented.is_empty:
        return []

    t = segmented.timestamps
    span = time_range if time_range is not None else segmented.span
    xs = x_positions(t, span, width)
    ys = y_positions(segmented.utilization, height)
    baseline = float(height)

    out: list[PathSegment] = []
    for run in segmented.runs:
        rx = xs[run.as_slice()]
        ry = ys[run.as_slice()]
        n = rx.size

        px = np.empty(2 * n - 1, dtype=np.float64)
        py = np.empty(2 * n - 1, dtype=np.float64)
        px[0] = rx[0]
        py[0] = ry[0]
        px[1::2] = rx[1:]
        py[1::2] = ry[:-1]
        px[2::2] = rx[1:]
        py[2::2] = ry[1:]

        if run.opened_by is Boundary.RESET:
            px = np.concatenate(([rx[0]], px))
            py = np.concatenate(([baseline], py))

        first_ts = int(t[run.start])
        last_ts = int(t[run.stop - 1])
        end_ts = last_ts
        if run.closed_by is Boundary.RESET:
            reset_x = xs[run.stop]
            px = np.concatenate((px, [reset_x, reset_x]))
            py = np.concatenate((py, [ry[-1], baseline]))
            end_ts = int(t[run.stop])

        out.append(
            PathSegment(
                px,
                py,
                is_gap=False,
                sample_count=n,
                duration_ms=last_ts - first_ts,
                start_ms=first_ts,
                end_ms=end_ts,
            )
        )

        if run.closed_by is Boundary.GAP:
            out.append(
                gap_segment(
                    float(rx[-1]),
                    float(xs[run.stop]),
                    baseline,
                    last_ts,
                    int(t[run.stop]),
                )
            )
    return out


def build_segments(
    samples: Sequence[Sample] | Iterable[Sample],
    *,
    size: Tuple[float, float],
    gap_threshold_ms: int,
    series: Series = Series.FIVE_HOUR,
    policy: ResetPolicy | None = None,
    time_range: Tuple[int, int] | None = None,
) -> list[PathSegment]:
    """Segment raw samples and map them straight to path geometry (no smoothing)."""
    segmented = segment_series(
        samples,
        gap_threshold_ms=gap_threshold_ms,
        series=series,
        policy=policy,
    )
    return path_segments(segmented, size=size, time_range=time_range)


def reset_marker_timestamps(
    samples: Sequence[Sample],
    *,
    drop_threshold: float = RESET_MARKER_DROP_PCT,
) -> list[int]:
    """Timestamps where either window's utilization fell by at least ``drop_threshold`` points.

    Stricter than :func:`is_reset_boundary`: reset timestamp drift alone does not count.
    """
    markers: list[int] = []
    for previous, current in zip(samples, samples[1:]):
        for series in Series:
            prev_util = previous.utilization_for(series)
            curr_util = current.utilization_for(series)
            if prev_util is None or curr_util is None:
                continue
            if float(prev_util) - float(curr_util) >= drop_threshold:
                markers.append(int(current.timestamp))
                break
    return markers
