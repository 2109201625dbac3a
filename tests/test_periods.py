from datetime import datetime, timedelta, timezone

import pytest

from headroom.models import HOUR_MS, Resolution
from headroom.periods import next_period_start, period_bounds, period_start, to_ms


def utc(*args):
    return to_ms(datetime(*args, tzinfo=timezone.utc))


def new_york():
    zoneinfo = pytest.importorskip("zoneinfo")
    try:
        return zoneinfo.ZoneInfo("America/New_York")
    except zoneinfo.ZoneInfoNotFoundError:
        pytest.skip("tz database not available")


def test_hourly_floor_utc():
    ts = utc(2024, 1, 2, 3, 4, 5)
    assert period_bounds(ts, Resolution.HOURLY) == (utc(2024, 1, 2, 3), utc(2024, 1, 2, 4))


def test_five_minute_floor_utc():
    ts = utc(2024, 1, 2, 3, 14, 59)
    assert period_bounds(ts, Resolution.FIVE_MIN) == (utc(2024, 1, 2, 3, 10), utc(2024, 1, 2, 3, 15))


def test_daily_bounds_utc():
    ts = utc(2024, 1, 2, 23, 59, 59)
    assert period_bounds(ts, Resolution.DAILY) == (utc(2024, 1, 2), utc(2024, 1, 3))


def test_period_start_on_boundary_is_itself():
    start = utc(2024, 1, 2, 3)
    assert period_start(start, Resolution.HOURLY) == start
    assert next_period_start(start, Resolution.HOURLY) == start + HOUR_MS


def test_hourly_floor_uses_local_offset():
    ist = timezone(timedelta(hours=5, minutes=30))
    # 10:45 local
    ts = utc(2024, 1, 2, 5, 15)
    start, end = period_bounds(ts, Resolution.HOURLY, ist)
    assert start == utc(2024, 1, 2, 4, 30)
    assert end - start == HOUR_MS


def test_daily_bounds_use_local_midnight():
    ist = timezone(timedelta(hours=5, minutes=30))
    ts = utc(2024, 1, 2, 20, 0)
    assert period_bounds(ts, Resolution.DAILY, ist) == (utc(2024, 1, 2, 18, 30), utc(2024, 1, 3, 18, 30))


def test_daily_period_length_across_dst():
    tz = new_york()
    spring = to_ms(datetime(2024, 3, 10, 12, tzinfo=tz))
    start, end = period_bounds(spring, Resolution.DAILY, tz)
    assert end - start == 23 * HOUR_MS

    autumn = to_ms(datetime(2024, 11, 3, 12, tzinfo=tz))
    start, end = period_bounds(autumn, Resolution.DAILY, tz)
    assert end - start == 25 * HOUR_MS


def test_raw_has_no_period():
    with pytest.raises(ValueError):
        period_bounds(0, Resolution.RAW)
