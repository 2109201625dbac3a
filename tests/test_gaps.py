from datetime import datetime, timezone

import pytest

from headroom.buckets import Bucket
from headroom.gaps import GapRange, find_gap_ranges, gap_at
from headroom.models import DAY_MS, HOUR_MS, Resolution
from headroom.periods import to_ms

BASE = to_ms(datetime(2024, 1, 1, tzinfo=timezone.utc))


def hourly(*hours):
    return [Bucket(BASE + h * HOUR_MS, BASE + (h + 1) * HOUR_MS, 10.0, 10.0, 10.0) for h in hours]


def test_consecutive_missing_hours_form_one_gap():
    gaps = find_gap_ranges(hourly(0, 1, 5), Resolution.HOURLY)
    assert gaps == [GapRange(BASE + 2 * HOUR_MS, BASE + 5 * HOUR_MS, 3)]
    assert gaps[0].duration_ms == 3 * HOUR_MS


def test_separate_misses_form_separate_gaps():
    gaps = find_gap_ranges(hourly(0, 2, 4), Resolution.HOURLY)
    assert [(g.start, g.end, g.missing_periods) for g in gaps] == [
        (BASE + HOUR_MS, BASE + 2 * HOUR_MS, 1),
        (BASE + 3 * HOUR_MS, BASE + 4 * HOUR_MS, 1),
    ]


def test_edges_are_not_gaps():
    assert find_gap_ranges(hourly(7), Resolution.HOURLY) == []
    assert find_gap_ranges(hourly(3, 4, 5), Resolution.HOURLY) == []
    assert find_gap_ranges([], Resolution.HOURLY) == []


def test_unsorted_buckets():
    gaps = find_gap_ranges(list(reversed(hourly(0, 1, 5))), Resolution.HOURLY)
    assert len(gaps) == 1


def test_raw_resolution_has_no_gaps():
    assert find_gap_ranges(hourly(0, 5), Resolution.RAW) == []


def test_daily_gaps_count_days():
    buckets = [
        Bucket(BASE, BASE + DAY_MS),
        Bucket(BASE + 4 * DAY_MS, BASE + 5 * DAY_MS),
    ]
    gaps = find_gap_ranges(buckets, Resolution.DAILY)
    assert gaps == [GapRange(BASE + DAY_MS, BASE + 4 * DAY_MS, 3)]


@pytest.mark.parametrize(
    "offset, expected_index",
    [
        (2 * HOUR_MS, 0),
        (5 * HOUR_MS - 1, 0),
        (5 * HOUR_MS, None),
        (7 * HOUR_MS + 30 * 60_000, 1),
        (HOUR_MS, None),
    ],
)
def test_gap_at(offset, expected_index):
    gaps = find_gap_ranges(hourly(0, 1, 5, 6, 8), Resolution.HOURLY)
    assert len(gaps) == 2
    found = gap_at(gaps, BASE + offset)
    if expected_index is None:
        assert found is None
    else:
        assert found is gaps[expected_index]
