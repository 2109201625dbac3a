"""Find interior runs of missing calendar periods between populated buckets."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Sequence

from headroom.buckets import Bucket
from headroom.models import Resolution
from headroom.periods import next_period_start

__all__ = ["GapRange", "find_gap_ranges", "gap_at"]

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class GapRange:
    """A span ``[start, end)`` of missing periods; both edges sit on period boundaries."""

    start: int
    end: int
    missing_periods: int = 0

    @property
    def duration_ms(self) -> int:
        return self.end - self.start

    def contains(self, timestamp_ms: float) -> bool:
        return self.start <= timestamp_ms < self.end


def _count_periods(start: int, end: int, resolution: Resolution, tz: tzinfo | None) -> int:
    count = 0
    cursor = start
    while cursor < end:
        cursor = next_period_start(cursor, resolution, tz)
        count += 1
    return count


def find_gap_ranges(
    buckets: Sequence[Bucket],
    resolution: Resolution,
    *,
    tz: tzinfo | None = None,
) -> list[GapRange]:
    """Merge consecutive missing periods between present buckets into gap ranges.

    Silence before the first or after the last bucket is not reported. Raw
    resolution has no calendar periods and yields no gaps.
    """
    if resolution is Resolution.RAW:
        return []
    ordered = sorted(buckets, key=lambda bucket: bucket.period_start)
    gaps: list[GapRange] = []
    for previous, current in zip(ordered, ordered[1:]):
        if current.period_start <= previous.period_end:
            continue
        gaps.append(
            GapRange(
                start=int(previous.period_end),
                end=int(current.period_start),
                missing_periods=_count_periods(
                    int(previous.period_end), int(current.period_start), resolution, tz
                ),
            )
        )
    if gaps:
        LOG.debug("%d gap range(s) across %d %s buckets", len(gaps), len(ordered), resolution.value)
    return gaps


def gap_at(gaps: Sequence[GapRange], timestamp_ms: float) -> GapRange | None:
    for gap in gaps:
        if gap.contains(timestamp_ms):
            return gap
    return None
