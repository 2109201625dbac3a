"""Assemble renderable line and bar charts from samples and rollups."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Iterable, Mapping, Sequence, Tuple, Union

from headroom.buckets import Bucket, aggregate_buckets, rollups_from_samples
from headroom.coords import x_positions, y_positions
from headroom.gaps import GapRange, find_gap_ranges
from headroom.merge import MIN_SEGMENT_DURATION_MS, absorbed_run_ordinals, merge_short_segments
from headroom.models import HeadroomState, Resolution, Rollup, Sample, Series, TimeRange
from headroom.segments import (
    PathSegment,
    ResetPolicy,
    gap_threshold_ms,
    path_segments,
    reset_marker_timestamps,
    segment_series,
)
from headroom.slope import DEFAULT_SLOPE_WINDOW_MS, SlopeLevel, SlopeThresholds, slope_levels
from headroom.smoothing import smooth_runs

__all__ = [
    "ChartPoint",
    "LineChart",
    "BarChart",
    "ChartOptions",
    "ChartSet",
    "build_line_chart",
    "build_bar_chart",
    "build_charts",
]

LOG = logging.getLogger(__name__)

UsageRow = Union[Sample, Rollup]


@dataclass(frozen=True)
class ChartPoint:
    """One plotted sample: smoothed value, slope and view position."""

    timestamp: int
    utilization: float
    raw_utilization: float
    slope: SlopeLevel
    x: float
    y: float
    segment: int


@dataclass(frozen=True, eq=False)
class LineChart:
    series: Series
    segments: Tuple[PathSegment, ...] = ()
    points: Tuple[ChartPoint, ...] = ()
    reset_markers: Tuple[int, ...] = ()
    headroom_state: HeadroomState = HeadroomState.DISCONNECTED

    @property
    def is_placeholder(self) -> bool:
        return not self.segments

    @property
    def data_segments(self) -> list[PathSegment]:
        return [segment for segment in self.segments if not segment.is_gap]

    @property
    def gap_segments(self) -> list[PathSegment]:
        return [segment for segment in self.segments if segment.is_gap]


@dataclass(frozen=True)
class BarChart:
    resolution: Resolution
    buckets: Tuple[Bucket, ...] = ()
    gaps: Tuple[GapRange, ...] = ()

    @property
    def is_placeholder(self) -> bool:
        return not self.buckets


@dataclass(frozen=True)
class ChartOptions:
    """Per-render snapshot of everything the charts depend on besides the data."""

    size: Tuple[float, float] = (600.0, 200.0)
    poll_interval_s: float = 30.0
    time_range: TimeRange = TimeRange.DAY
    visible_series: Tuple[Series, ...] = (Series.FIVE_HOUR, Series.SEVEN_DAY)
    tz: tzinfo | None = None
    reset_policy: ResetPolicy = field(default_factory=ResetPolicy)
    slope_thresholds: SlopeThresholds = field(default_factory=SlopeThresholds)
    slope_window_ms: int = DEFAULT_SLOPE_WINDOW_MS
    min_segment_duration_ms: int = MIN_SEGMENT_DURATION_MS

    @property
    def both_visible(self) -> bool:
        return all(series in self.visible_series for series in Series)


@dataclass(frozen=True, eq=False)
class ChartSet:
    time_range: TimeRange
    visible_series: Tuple[Series, ...]
    lines: Mapping[Series, LineChart] = field(default_factory=dict)
    bars: BarChart | None = None


def _latest_state(samples: Sequence[Sample], series: Series) -> HeadroomState:
    for sample in reversed(samples):
        util = sample.utilization_for(series)
        if util is not None:
            return HeadroomState.from_utilization(util)
    return HeadroomState.DISCONNECTED


def build_line_chart(
    samples: Sequence[Sample] | Iterable[Sample],
    *,
    size: Tuple[float, float],
    poll_interval_s: float,
    series: Series = Series.FIVE_HOUR,
    policy: ResetPolicy | None = None,
    thresholds: SlopeThresholds | None = None,
    slope_window_ms: int = DEFAULT_SLOPE_WINDOW_MS,
    min_segment_duration_ms: int = MIN_SEGMENT_DURATION_MS,
    time_range: Tuple[int, int] | None = None,
) -> LineChart:
    """Run segmenting, smoothing, slope classification and short-segment merging.

    Fewer than two valid samples, or a zero-length span, gives a placeholder
    chart with no segments.
    """
    samples = list(samples)
    segmented = segment_series(
        samples,
        gap_threshold_ms=gap_threshold_ms(poll_interval_s),
        series=series,
        policy=policy,
    )
    state = _latest_state(samples, series)
    markers = tuple(reset_marker_timestamps(samples))
    if segmented.is_empty:
        LOG.debug("%s line chart: placeholder", series.value)
        return LineChart(series, reset_markers=markers, headroom_state=state)

    smoothed = smooth_runs(segmented)
    levels = slope_levels(smoothed, thresholds=thresholds, window_ms=slope_window_ms)
    raw_segments = path_segments(smoothed, size=size, time_range=time_range)
    absorbed = absorbed_run_ordinals(raw_segments, min_duration_ms=min_segment_duration_ms)
    segments = merge_short_segments(
        raw_segments,
        height=size[1],
        min_duration_ms=min_segment_duration_ms,
    )

    span = time_range if time_range is not None else smoothed.span
    xs = x_positions(smoothed.timestamps, span, size[0])
    ys = y_positions(smoothed.utilization, size[1])
    run_index = smoothed.run_index()
    points = tuple(
        ChartPoint(
            timestamp=int(smoothed.timestamps[i]),
            utilization=float(smoothed.utilization[i]),
            raw_utilization=float(segmented.utilization[i]),
            slope=levels[i],
            x=float(xs[i]),
            y=float(ys[i]),
            segment=int(run_index[i]),
        )
        for i in range(int(smoothed.timestamps.size))
        if int(run_index[i]) not in absorbed
    )
    LOG.debug(
        "%s line chart: %d segments, %d points",
        series.value,
        len(segments),
        len(points),
    )
    return LineChart(series, tuple(segments), points, markers, state)


def _as_rows(data: Iterable[UsageRow], policy: ResetPolicy | None) -> list[Rollup]:
    samples: list[Sample] = []
    rows: list[Rollup] = []
    for item in data:
        if isinstance(item, Sample):
            samples.append(item)
        else:
            rows.append(item)
    if samples:
        rows.extend(rollups_from_samples(samples, policy=policy))
    return rows


def build_bar_chart(
    data: Sequence[UsageRow] | Iterable[UsageRow],
    resolution: Resolution | TimeRange,
    *,
    tz: tzinfo | None = None,
    range_start: int | None = None,
    range_end: int | None = None,
    policy: ResetPolicy | None = None,
) -> BarChart:
    """Aggregate samples and/or rollups into buckets and locate the gaps between them."""
    if isinstance(resolution, TimeRange):
        resolution = resolution.bar_resolution
    rows = _as_rows(data, policy)
    buckets = aggregate_buckets(
        rows,
        resolution,
        tz=tz,
        range_start=range_start,
        range_end=range_end,
    )
    gaps = find_gap_ranges(buckets, resolution, tz=tz)
    return BarChart(resolution, tuple(buckets), tuple(gaps))


def build_charts(
    data: Sequence[UsageRow] | Iterable[UsageRow],
    options: ChartOptions,
    *,
    now_ms: int,
) -> ChartSet:
    """Build whatever the selected time range shows.

    The last 24 hours render one step-area line chart per visible series from
    raw samples; longer ranges render calendar bar charts.
    """
    data = list(data)
    time_range = options.time_range
    range_start = time_range.start_timestamp(now_ms)
    resolution = time_range.bar_resolution

    if resolution is Resolution.RAW:
        samples = [
            item
            for item in data
            if isinstance(item, Sample) and range_start <= item.timestamp <= now_ms
        ]
        lines = {
            series: build_line_chart(
                samples,
                size=options.size,
                poll_interval_s=options.poll_interval_s,
                series=series,
                policy=options.reset_policy,
                thresholds=options.slope_thresholds,
                slope_window_ms=options.slope_window_ms,
                min_segment_duration_ms=options.min_segment_duration_ms,
            )
            for series in options.visible_series
        }
        return ChartSet(time_range, options.visible_series, lines=lines)

    bars = build_bar_chart(
        data,
        resolution,
        tz=options.tz,
        range_start=range_start,
        policy=options.reset_policy,
    )
    return ChartSet(time_range, options.visible_series, bars=bars)
