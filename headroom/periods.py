"""Calendar-aligned aggregation periods (5-minute, hour, day) in a given timezone."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Tuple

from headroom.models import Resolution

__all__ = ["period_bounds", "period_start", "next_period_start", "to_ms"]


def to_ms(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


def period_bounds(
    timestamp_ms: int,
    resolution: Resolution,
    tz: tzinfo | None = None,
) -> Tuple[int, int]:
    """
    Return ``[start, end)`` in Unix ms of the calendar period containing ``timestamp_ms``.
    Flooring uses local wall-clock time in ``tz`` (UTC by default), so a daily
    period is 23 or 25 hours long across a DST change.
    """
    tz = tz or timezone.utc
    ts = int(timestamp_ms)
    local = datetime.fromtimestamp(ts / 1000.0, tz)

    if resolution is Resolution.DAILY:
        start = datetime(local.year, local.month, local.day, tzinfo=tz)
        following = start.date() + timedelta(days=1)
        end = datetime(following.year, following.month, following.day, tzinfo=tz)
        return to_ms(start), to_ms(end)

    period = resolution.period_ms
    if period is None:
        raise ValueError(f"{resolution.value} resolution has no calendar period")
    offset = local.utcoffset()
    offset_ms = int(offset.total_seconds() * 1000) if offset is not None else 0
    local_ms = ts + offset_ms
    start_ms = local_ms - (local_ms % period) - offset_ms
    return start_ms, start_ms + period


def period_start(timestamp_ms: int, resolution: Resolution, tz: tzinfo | None = None) -> int:
    return period_bounds(timestamp_ms, resolution, tz)[0]


def next_period_start(start_ms: int, resolution: Resolution, tz: tzinfo | None = None) -> int:
    return period_bounds(start_ms, resolution, tz)[1]
