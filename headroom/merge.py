"""Absorb isolated short data segments (brief wake-ups) into the surrounding gap."""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from headroom.models import MINUTE_MS
from headroom.segments import PathSegment, gap_segment

__all__ = [
    "MIN_SEGMENT_DURATION_MS",
    "isolated_short_indices",
    "absorbed_run_ordinals",
    "merge_short_segments",
]

LOG = logging.getLogger(__name__)

MIN_SEGMENT_DURATION_MS = 5 * MINUTE_MS


def isolated_short_indices(
    segments: Sequence[PathSegment],
    *,
    min_duration_ms: int = MIN_SEGMENT_DURATION_MS,
) -> list[int]:
    """Indices of data segments shorter than ``min_duration_ms`` with a gap on both sides."""
    out: list[int] = []
    last = len(segments) - 1
    for idx, segment in enumerate(segments):
        if segment.is_gap or segment.duration_ms >= min_duration_ms:
            continue
        if 0 < idx < last and segments[idx - 1].is_gap and segments[idx + 1].is_gap:
            out.append(idx)
    return out


def merge_short_segments(
    segments: Sequence[PathSegment],
    *,
    height: float,
    min_duration_ms: int = MIN_SEGMENT_DURATION_MS,
) -> list[PathSegment]:
    """Convert isolated short data segments to gaps, then merge runs of adjacent gaps.

    Short segments next to real data, or at either end of the sequence, are kept.
    """
    if not segments:
        return []
    absorbed = set(isolated_short_indices(segments, min_duration_ms=min_duration_ms))
    if absorbed:
        LOG.debug("absorbing %d isolated short segment(s)", len(absorbed))

    baseline = float(height)
    merged: list[PathSegment] = []
    for idx, segment in enumerate(segments):
        if idx in absorbed:
            segment = gap_segment(
                segment.first_x,
                segment.last_x,
                baseline,
                segment.start_ms,
                segment.end_ms,
            )
        if segment.is_gap and merged and merged[-1].is_gap:
            previous = merged[-1]
            merged[-1] = gap_segment(
                previous.first_x,
                segment.last_x,
                baseline,
                previous.start_ms,
                segment.end_ms,
            )
            continue
        merged.append(segment)
    return merged


def absorbed_run_ordinals(
    segments: Sequence[PathSegment],
    *,
    min_duration_ms: int = MIN_SEGMENT_DURATION_MS,
) -> set[int]:
    """Data-segment ordinals (0 = first data segment) that the merge turns into gaps."""
    ordinals = np.cumsum([not segment.is_gap for segment in segments]) - 1
    return {
        int(ordinals[idx])
        for idx in isolated_short_indices(segments, min_duration_ms=min_duration_ms)
    }
