"""Test helpers shared across modules."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from clock_in.config import TagDefaults
from clock_in.models import Segment, Tag


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> datetime:
        self.current = value
        return value


def at(hour: int, minute: int = 0, second: int = 0, *, day: int = 11) -> datetime:
    """A time on March ``day`` 2024 (a Monday by default)."""
    return datetime(2024, 3, day, hour, minute, second)


def default_tags() -> list[Tag]:
    return [
        Tag(name=name, order=index, is_system=name == TagDefaults.idle_name)
        for index, name in enumerate(TagDefaults.names)
    ]


def make_segment(
    tag: Tag,
    start: datetime,
    end: Optional[datetime] = None,
    note: Optional[str] = None,
) -> Segment:
    return Segment(tag_id=tag.id, tag_name=tag.name, start=start, end=end, note=note)


def active_segments(segments: list[Segment]) -> list[Segment]:
    return [segment for segment in segments if segment.end is None]
