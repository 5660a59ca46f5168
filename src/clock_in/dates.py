"""Calendar helpers. All values are naive local datetimes."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Union

DayLike = Union[date, datetime]

ONE_DAY = timedelta(days=1)


def as_day(value: DayLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(value: DayLike) -> datetime:
    return datetime.combine(as_day(value), time.min)


def next_midnight(value: datetime) -> datetime:
    """Return the first midnight strictly after ``value``'s day start."""
    return start_of_day(value) + ONE_DAY


def spans_midnight(start: datetime, end: datetime) -> bool:
    # Ending exactly on the next midnight still belongs to the start day.
    return end > next_midnight(start)


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def window_days(anchor: DayLike, length: int = 7) -> list[date]:
    """Return ``anchor`` followed by the ``length - 1`` preceding days."""
    day = as_day(anchor)
    return [day - timedelta(days=offset) for offset in range(max(1, length))]
