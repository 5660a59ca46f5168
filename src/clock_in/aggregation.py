"""Memoized per-day and rolling-window totals derived from the ledger."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Optional

from .config import CategoryTable, LedgerSettings
from .dates import DayLike, as_day, window_days
from .ledger import Ledger
from .models import Tag

logger = logging.getLogger(__name__)


class AggregationCache:
    """Caches ``Ledger.totals_by_tag`` per calendar day against a reference now.

    Entries are dropped whenever the ledger publishes a change, and the entry
    for today is dropped on every tick while a segment is running.
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        categories: Optional[CategoryTable] = None,
        settings: Optional[LedgerSettings] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.ledger = ledger
        self.categories = categories or CategoryTable()
        self.settings = settings or ledger.settings
        self._now = now if now is not None else ledger.now()
        self._lock = threading.Lock()
        self._totals: dict[date, dict[str, float]] = {}
        self._seen_version = ledger.version
        self._unsubscribe = ledger.subscribe(self.invalidate_all)

    @property
    def now(self) -> datetime:
        return self._now

    def close(self) -> None:
        self._unsubscribe()

    def tick(self, now: datetime) -> None:
        self._now = now
        if self.ledger.current_segment is not None:
            self.invalidate_day(now)

    def invalidate_all(self) -> None:
        with self._lock:
            self._totals.clear()
            self._seen_version = self.ledger.version

    def invalidate_day(self, day: DayLike) -> None:
        with self._lock:
            self._totals.pop(as_day(day), None)

    def cached_days(self) -> list[date]:
        with self._lock:
            return sorted(self._totals)

    # -- per day ---------------------------------------------------------------

    def totals_by_tag(self, day: DayLike) -> dict[str, float]:
        key = as_day(day)
        with self._lock:
            if self._seen_version != self.ledger.version:
                self._totals.clear()
                self._seen_version = self.ledger.version
            cached = self._totals.get(key)
            version = self._seen_version
        if cached is not None:
            return dict(cached)
        totals = self.ledger.totals_by_tag(key, self._now)
        with self._lock:
            # A mutation may have landed while the totals were computed.
            if version == self._seen_version == self.ledger.version:
                self._totals[key] = totals
        return dict(totals)

    def total_tracked(self, day: DayLike) -> float:
        return sum(self.totals_by_tag(day).values())

    def focused_time_for_day(self, day: DayLike) -> float:
        return self._sum_names(self.totals_by_tag(day), self.categories.focused)

    def maintenance_time_for_day(self, day: DayLike) -> float:
        return self._sum_names(self.totals_by_tag(day), self.categories.maintenance)

    def idle_time_for_day(self, day: DayLike) -> float:
        return self.totals_by_tag(day).get(self.ledger.idle_tag.id, 0.0)

    def active_time_for_day(self, day: DayLike) -> float:
        totals = self.totals_by_tag(day)
        idle_id = self.ledger.idle_tag.id
        return sum(seconds for tag_id, seconds in totals.items() if tag_id != idle_id)

    def dominant_active_tag(self, day: DayLike) -> Optional[Tag]:
        idle_id = self.ledger.idle_tag.id
        candidates = [
            (seconds, tag_id)
            for tag_id, seconds in self.totals_by_tag(day).items()
            if tag_id != idle_id and seconds > 0
        ]
        if not candidates:
            return None
        _, tag_id = max(candidates)
        return self.ledger.tag(tag_id)

    # -- windows ---------------------------------------------------------------

    def window_days(self, anchor: DayLike) -> list[date]:
        return window_days(anchor, self.settings.window_length)

    def last_n_days(self, n: int) -> list[date]:
        return window_days(self._now, n)

    def active_time_for_window(self, anchor: DayLike) -> float:
        return sum(self.active_time_for_day(day) for day in self.window_days(anchor))

    def focused_time_for_window(self, anchor: DayLike) -> float:
        return sum(self.focused_time_for_day(day) for day in self.window_days(anchor))

    def maintenance_time_for_window(self, anchor: DayLike) -> float:
        return sum(self.maintenance_time_for_day(day) for day in self.window_days(anchor))

    def idle_time_for_window(self, anchor: DayLike) -> float:
        return sum(self.idle_time_for_day(day) for day in self.window_days(anchor))

    def totals_by_tag_for_window(self, anchor: DayLike) -> dict[str, float]:
        totals = {tag.id: 0.0 for tag in self.ledger.tags}
        for day in self.window_days(anchor):
            for tag_id, seconds in self.totals_by_tag(day).items():
                totals[tag_id] = totals.get(tag_id, 0.0) + seconds
        return totals

    def active_totals_by_tag_for_window(self, anchor: DayLike) -> dict[str, float]:
        idle_id = self.ledger.idle_tag.id
        return {
            tag_id: seconds
            for tag_id, seconds in self.totals_by_tag_for_window(anchor).items()
            if tag_id != idle_id and seconds > 0
        }

    def tracked_days_count(self, anchor: DayLike) -> int:
        threshold = self.settings.tracked_day_threshold.total_seconds()
        return sum(
            1 for day in self.window_days(anchor) if self.active_time_for_day(day) >= threshold
        )

    def _sum_names(self, totals: dict[str, float], names: frozenset[str]) -> float:
        total = 0.0
        for tag in self.ledger.tags:
            if tag.name in names:
                total += totals.get(tag.id, 0.0)
        return total
