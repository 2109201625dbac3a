import numpy as np
import pytest

from headroom.models import (
    DAY_MS,
    HeadroomState,
    Resolution,
    Sample,
    Series,
    TimeRange,
    series_arrays,
    valid_utilization_mask,
)


def test_every_enum_member_has_table_entries():
    for series in Series:
        assert series.label
    for resolution in Resolution:
        assert resolution.rank >= 0
        assert resolution.period_ms is None or resolution.period_ms > 0
    for time_range in TimeRange:
        assert time_range.label
        assert time_range.description
        assert isinstance(time_range.bar_resolution, Resolution)


def test_resolution_ranks_follow_declaration_order():
    ranks = [resolution.rank for resolution in Resolution]
    assert ranks == sorted(ranks)
    assert Resolution.FIVE_MIN.is_finer_than(Resolution.HOURLY)
    assert not Resolution.DAILY.is_finer_than(Resolution.HOURLY)
    assert Resolution.HOURLY.period_ms == 3_600_000
    assert Resolution.DAILY.period_ms is None


def test_time_range_resolutions():
    assert TimeRange.DAY.bar_resolution is Resolution.RAW
    assert TimeRange.WEEK.bar_resolution is Resolution.HOURLY
    assert TimeRange.MONTH.bar_resolution is Resolution.DAILY
    assert TimeRange.ALL.bar_resolution is Resolution.DAILY


def test_time_range_start_timestamp():
    now = 100 * DAY_MS
    assert TimeRange.DAY.start_timestamp(now) == now - DAY_MS
    assert TimeRange.MONTH.start_timestamp(now) == now - 30 * DAY_MS
    assert TimeRange.ALL.start_timestamp(now) == 0


def test_time_range_from_label():
    assert TimeRange.from_label("7d") is TimeRange.WEEK
    assert TimeRange.from_label(" All ") is TimeRange.ALL
    assert TimeRange.from_label("month") is TimeRange.MONTH
    with pytest.raises(ValueError):
        TimeRange.from_label("fortnight")


@pytest.mark.parametrize(
    "utilization, expected",
    [
        (None, HeadroomState.DISCONNECTED),
        (float("nan"), HeadroomState.DISCONNECTED),
        (100.0, HeadroomState.EXHAUSTED),
        (104.0, HeadroomState.EXHAUSTED),
        (96.0, HeadroomState.CRITICAL),
        (95.0, HeadroomState.WARNING),
        (80.5, HeadroomState.WARNING),
        (80.0, HeadroomState.CAUTION),
        (60.0, HeadroomState.CAUTION),
        (59.0, HeadroomState.NORMAL),
        (0.0, HeadroomState.NORMAL),
    ],
)
def test_headroom_state_thresholds(utilization, expected):
    assert HeadroomState.from_utilization(utilization) is expected


def test_sample_series_accessors():
    sample = Sample(10, 20.0, 1_000, 30.0, 2_000)
    assert sample.utilization_for(Series.FIVE_HOUR) == 20.0
    assert sample.reset_at_for(Series.FIVE_HOUR) == 1_000
    assert sample.utilization_for(Series.SEVEN_DAY) == 30.0
    assert sample.reset_at_for(Series.SEVEN_DAY) == 2_000


def test_series_arrays_fill_missing_with_nan():
    samples = [Sample(1, 10.0, 500), Sample(2, None, None, 40.0)]
    t, u, r = series_arrays(samples, Series.FIVE_HOUR)
    assert t.dtype == np.int64
    assert t.tolist() == [1, 2]
    assert u[0] == 10.0 and np.isnan(u[1])
    assert r[0] == 500.0 and np.isnan(r[1])

    _, seven, _ = series_arrays(samples, Series.SEVEN_DAY)
    assert np.isnan(seven[0]) and seven[1] == 40.0


def test_valid_utilization_mask():
    values = np.array([0.0, 100.0, -0.1, 100.1, np.nan, 55.0])
    assert valid_utilization_mask(values).tolist() == [True, True, False, False, False, True]
