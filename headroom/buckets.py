"""Group samples or rollups into calendar buckets for bar charts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Sequence, Tuple

import numpy as np

from headroom.models import Resolution, Rollup, Sample, Series, valid_utilization_mask
from headroom.periods import period_bounds
from headroom.segments import ResetPolicy, is_reset_boundary

__all__ = [
    "Bucket",
    "rollups_from_samples",
    "aggregate_buckets",
    "bucket_midpoint",
    "bar_bounds",
]

LOG = logging.getLogger(__name__)

# attribute prefix for per-series fields on Rollup and Bucket
_SERIES_PREFIX = {
    Series.FIVE_HOUR: "five_hour",
    Series.SEVEN_DAY: "seven_day",
}

# index of the half a series occupies when both are drawn side by side
_BAR_SIDE = {
    Series.FIVE_HOUR: 0,
    Series.SEVEN_DAY: 1,
}

_BAR_OUTER_PADDING = 0.05
_BAR_INNER_GAP = 0.02


@dataclass(frozen=True)
class Bucket:
    """Aggregated usage for one populated calendar period ``[period_start, period_end)``."""

    period_start: int
    period_end: int
    five_hour_peak: float | None = None
    five_hour_min: float | None = None
    five_hour_avg: float | None = None
    seven_day_peak: float | None = None
    seven_day_min: float | None = None
    seven_day_avg: float | None = None
    reset_count: int = 0

    @property
    def midpoint(self) -> float:
        return bucket_midpoint(self)

    def peak(self, series: Series) -> float | None:
        return getattr(self, f"{_SERIES_PREFIX[series]}_peak")

    def minimum(self, series: Series) -> float | None:
        return getattr(self, f"{_SERIES_PREFIX[series]}_min")

    def average(self, series: Series) -> float | None:
        return getattr(self, f"{_SERIES_PREFIX[series]}_avg")

    @classmethod
    def from_rollup(cls, row: Rollup) -> "Bucket":
        return cls(
            period_start=int(row.period_start),
            period_end=int(row.period_end),
            five_hour_peak=row.five_hour_peak,
            five_hour_min=row.five_hour_min,
            five_hour_avg=row.five_hour_avg,
            seven_day_peak=row.seven_day_peak,
            seven_day_min=row.seven_day_min,
            seven_day_avg=row.seven_day_avg,
            reset_count=int(row.reset_count),
        )


def rollups_from_samples(
    samples: Sequence[Sample],
    *,
    policy: ResetPolicy | None = None,
) -> list[Rollup]:
    """Express raw samples as RAW-resolution rows so they aggregate like rollups.

    Each row's peak, min and average equal the sample's utilization. Missing or
    out-of-range readings are stored as ``None`` and the row is kept, so a row
    still carries one reset when a five-hour reset boundary lies between the
    sample and the one before it.
    """
    rows: list[Rollup] = []
    previous: Sample | None = None
    for sample in samples:
        resets = 0
        if previous is not None and is_reset_boundary(previous, sample, policy=policy):
            resets = 1
        five = _valid_or_none(sample.utilization)
        seven = _valid_or_none(sample.seven_day_utilization)
        rows.append(
            Rollup(
                period_start=int(sample.timestamp),
                period_end=int(sample.timestamp),
                resolution=Resolution.RAW,
                five_hour_avg=five,
                five_hour_peak=five,
                five_hour_min=five,
                seven_day_avg=seven,
                seven_day_peak=seven,
                seven_day_min=seven,
                reset_count=resets,
            )
        )
        previous = sample
    return rows


def _valid_or_none(value: float | None) -> float | None:
    if value is None or not valid_utilization_mask(np.array([float(value)]))[0]:
        return None
    return float(value)


def _column(rows: Sequence[Rollup], name: str) -> np.ndarray:
    return np.array(
        [np.nan if getattr(row, name) is None else float(getattr(row, name)) for row in rows],
        dtype=np.float64,
    )


def _optional(value: float) -> float | None:
    return None if np.isnan(value) else float(value)


def _group_mean(values: np.ndarray, group_starts: np.ndarray) -> np.ndarray:
    present = ~np.isnan(values)
    sums = np.add.reduceat(np.where(present, values, 0.0), group_starts)
    counts = np.add.reduceat(present.astype(np.int64), group_starts)
    out = np.full(sums.shape, np.nan, dtype=np.float64)
    np.divide(sums, counts, out=out, where=counts > 0)
    return out


def aggregate_buckets(
    rows: Sequence[Rollup] | Iterable[Rollup],
    resolution: Resolution,
    *,
    tz: tzinfo | None = None,
    range_start: int | None = None,
    range_end: int | None = None,
) -> list[Bucket]:
    """Aggregate rows into one :class:`Bucket` per populated calendar period.

    Parameters
    ----------
    rows:
        Raw-sample rows (see :func:`rollups_from_samples`) and/or stored rollups
        of any native resolution.
    resolution:
        Target bucket size. ``RAW`` returns one bucket per row unchanged.
    tz:
        Timezone whose hour/day edges define the periods (UTC by default).
    range_start, range_end:
        Optional ``[start, end)`` filter on each row's ``period_start``.

    Returns
    -------
    list[Bucket]
        Ordered by ``period_start``. Peak is the max of contributing peaks, min
        the min of contributing mins, avg the plain mean of contributing
        averages, and reset_count their sum. Empty periods produce no bucket.
    """
    selected = [
        row
        for row in rows
        if (range_start is None or row.period_start >= range_start)
        and (range_end is None or row.period_start < range_end)
    ]
    if not selected:
        return []
    selected.sort(key=lambda row: row.period_start)

    if resolution is Resolution.RAW:
        return [Bucket.from_rollup(row) for row in selected]

    coarser = sum(1 for row in selected if resolution.is_finer_than(row.resolution))
    if coarser:
        LOG.debug("%d row(s) coarser than %s grouped by their period start", coarser, resolution.value)

    bounds: list[Tuple[int, int]] = []
    cache: dict[int, Tuple[int, int]] = {}
    for row in selected:
        key = int(row.period_start)
        if key not in cache:
            cache[key] = period_bounds(key, resolution, tz)
        bounds.append(cache[key])
    keys = np.array([start for start, _ in bounds], dtype=np.int64)

    group_starts = np.concatenate(([0], np.flatnonzero(np.diff(keys)) + 1)).astype(np.intp)

    columns = {}
    for prefix in _SERIES_PREFIX.values():
        columns[f"{prefix}_peak"] = np.fmax.reduceat(_column(selected, f"{prefix}_peak"), group_starts)
        columns[f"{prefix}_min"] = np.fmin.reduceat(_column(selected, f"{prefix}_min"), group_starts)
        columns[f"{prefix}_avg"] = _group_mean(_column(selected, f"{prefix}_avg"), group_starts)
    resets = np.add.reduceat(
        np.array([int(row.reset_count) for row in selected], dtype=np.int64),
        group_starts,
    )

    buckets: list[Bucket] = []
    for group, first in enumerate(group_starts):
        start, end = bounds[int(first)]
        buckets.append(
            Bucket(
                period_start=start,
                period_end=end,
                reset_count=int(resets[group]),
                **{name: _optional(values[group]) for name, values in columns.items()},
            )
        )
    LOG.debug("aggregated %d rows into %d %s buckets", len(selected), len(buckets), resolution.value)
    return buckets


def bucket_midpoint(bucket: Bucket) -> float:
    return (bucket.period_start + bucket.period_end) / 2.0


def bar_bounds(bucket: Bucket, series: Series, *, both_visible: bool) -> Tuple[float, float]:
    """Horizontal extent (Unix ms) of a bar inside its period.

    A single series spans 90% of the period. With both series visible the
    period splits in half, five-hour on the left, with a small gap around the
    midpoint.
    """
    start = float(bucket.period_start)
    end = float(bucket.period_end)
    duration = end - start
    padding = duration * _BAR_OUTER_PADDING
    side = _BAR_SIDE[series]
    if not both_visible:
        return start + padding, end - padding
    half = duration * 0.5
    inner = duration * _BAR_INNER_GAP
    if side == 0:
        return start + padding, start + half - inner
    return start + half + inner, end - padding
