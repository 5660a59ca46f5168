"""Read-time projection that coalesces same-tag segments and drops noise.

The same function backs the aggregate queries and ``Ledger.merge_adjacent``,
which persists its result. Inputs are never mutated; the projection works on
copies.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .dates import truncate_to_minute
from .models import Segment

DEFAULT_GAP = timedelta(seconds=60)


def same_tag(first: Segment, second: Segment) -> bool:
    if first.tag_id is not None and second.tag_id is not None:
        return first.tag_id == second.tag_id
    return first.tag_name == second.tag_name


def _merge_into(last: Segment, segment: Segment) -> None:
    if last.end is not None and segment.end is not None:
        last.end = max(last.end, segment.end)
    else:
        last.end = None


def clean_segments(
    segments: Iterable[Segment],
    now: datetime,
    *,
    merge_gap: timedelta = DEFAULT_GAP,
    noise_threshold: timedelta = DEFAULT_GAP,
) -> list[Segment]:
    """Coalesce segments separated by short gaps and absorb sub-minute noise."""
    ordered = sorted((replace(segment) for segment in segments), key=lambda s: s.start)
    result: list[Segment] = []
    gap_limit = merge_gap.total_seconds()
    noise_limit = noise_threshold.total_seconds()

    for segment in ordered:
        last = result[-1] if result else None
        if last is not None:
            # An open-ended last entry has no gap to anything after it.
            last_end = last.end if last.end is not None else segment.start
            gap = (segment.start - last_end).total_seconds()
            if same_tag(last, segment) and gap <= gap_limit:
                _merge_into(last, segment)
                continue

        if segment.end is not None and segment.duration_seconds(now) < noise_limit:
            if last is not None and same_tag(last, segment):
                _merge_into(last, segment)
            continue

        result.append(segment)

    return result


def intervals_overlap(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime,
) -> bool:
    """Half-open overlap test on minute-truncated bounds."""
    return truncate_to_minute(start) < truncate_to_minute(other_end) and truncate_to_minute(
        end
    ) > truncate_to_minute(other_start)


def find_overlap(
    segments: Iterable[Segment],
    start: datetime,
    end: Optional[datetime],
    now: datetime,
    *,
    excluding: Optional[str] = None,
) -> Optional[Segment]:
    candidate_end = end if end is not None else now
    for segment in segments:
        if segment.id == excluding:
            continue
        if intervals_overlap(start, candidate_end, segment.start, segment.effective_end(now)):
            return segment
    return None
