"""Session wiring: ledger, aggregation cache, undo slot and the tick loop."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from .aggregation import AggregationCache
from .config import CategoryTable, LedgerSettings
from .dates import DayLike, spans_midnight, start_of_day
from .ledger import Clock, Ledger, TagRef, system_clock
from .models import Segment, UndoToken
from .storage import LedgerStore, SQLiteStore

logger = logging.getLogger(__name__)


class LedgerSession:
    """Front door used by the CLI and the web app."""

    def __init__(
        self,
        ledger: Ledger,
        *,
        categories: Optional[CategoryTable] = None,
    ) -> None:
        self.ledger = ledger
        self.settings = ledger.settings
        self.cache = AggregationCache(ledger, categories=categories)
        self._clock: Clock = ledger.now
        self._lock = threading.Lock()
        self._visible_views: set[str] = set()
        self._last_activation: Optional[datetime] = None
        self._undo: Optional[UndoToken] = None

    @classmethod
    def open(
        cls,
        store: LedgerStore,
        *,
        clock: Clock = system_clock,
        settings: Optional[LedgerSettings] = None,
        categories: Optional[CategoryTable] = None,
        legacy_payload: Union[bytes, str, None] = None,
    ) -> "LedgerSession":
        ledger = Ledger.open(store, clock=clock, settings=settings, legacy_payload=legacy_payload)
        return cls(ledger, categories=categories)

    def close(self) -> None:
        self.cache.close()
        self.ledger.close()

    @property
    def now(self) -> datetime:
        return self.cache.now

    # -- switching -------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self._undo is not None and self._undo == self.ledger.pending_undo

    def switch_tag(self, tag: TagRef) -> Optional[UndoToken]:
        now = self._clock()
        self.ledger.check_day_rollover(True, now)
        self._undo = self.ledger.switch_tag(tag, now)
        self.cache.tick(now)
        return self._undo

    def undo_last_switch(self) -> bool:
        token, self._undo = self._undo, None
        if token is None:
            return False
        return self.ledger.undo_last_switch(token)

    def end_day_and_reset(self) -> None:
        self.ledger.end_day_and_reset(self._clock())
        self._undo = None

    # -- edits -----------------------------------------------------------------

    def update_segment(
        self,
        segment_id: str,
        tag: TagRef,
        start: datetime,
        end: Optional[datetime],
        note: Optional[str] = None,
    ) -> Segment:
        return self.ledger.update_segment(segment_id, tag, start, end, note, now=self.now)

    def validation_error_for_edit(
        self, segment_id: str, start: datetime, end: Optional[datetime]
    ) -> Optional[str]:
        return self.ledger.validation_error_for_edit(segment_id, start, end, now=self.now)

    def delete_segment(self, segment_id: str) -> None:
        self.ledger.delete_segment(segment_id, now=self._clock())

    def split_segment(
        self, segment_id: str, at: datetime, before_tag: TagRef, after_tag: TagRef
    ) -> tuple[Segment, Segment]:
        return self.ledger.split_segment(segment_id, at, before_tag, after_tag, now=self.now)

    def merge_adjacent(self, day: DayLike) -> list[Segment]:
        return self.ledger.merge_adjacent(day, now=self.now)

    # -- ticking ---------------------------------------------------------------

    @property
    def tick_interval(self) -> float:
        with self._lock:
            visible = bool(self._visible_views)
        interval = self.settings.active_tick if visible else self.settings.inactive_tick
        return interval.total_seconds()

    def set_view_visible(self, view: str, visible: bool) -> None:
        with self._lock:
            if visible:
                self._visible_views.add(view)
            else:
                self._visible_views.discard(view)
        now = self._clock()
        self.cache.tick(now)
        self.cache.invalidate_day(now)

    def tick(self, now: Optional[datetime] = None) -> None:
        self.cache.tick(now if now is not None else self._clock())

    def handle_app_became_active(self, now: Optional[datetime] = None) -> bool:
        """Run the day-boundary repairs, at most once per activation throttle."""
        now = now if now is not None else self._clock()
        with self._lock:
            last = self._last_activation
            if last is not None and now - last < self.settings.activation_throttle:
                return False
            self._last_activation = now

        today = start_of_day(now)
        segments = self.ledger.segments
        needs_rollover = any(s.end is None and s.start < today for s in segments)
        needs_normalization = any(
            s.end is not None and spans_midnight(s.start, s.end) for s in segments
        )
        if needs_rollover:
            self.ledger.check_day_rollover(True, now)
        if needs_normalization:
            self.ledger.normalize_segments_across_midnight(now, force=True)
        return needs_rollover or needs_normalization


class TickRunner:
    """Drive a session's clock from a background thread."""

    def __init__(self, session: LedgerSession) -> None:
        self._session = session
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="clock-in-ticker",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tick thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tick thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self._session.tick()
                self._session.handle_app_became_active()
            except Exception:
                logger.exception("Tick failed; will retry on the next interval.")
            stop_event.wait(self._session.tick_interval)


@contextmanager
def open_session(
    db_path: Path,
    *,
    clock: Clock = system_clock,
    settings: Optional[LedgerSettings] = None,
    legacy_payload: Union[bytes, str, None] = None,
) -> Iterator[LedgerSession]:
    """Open a session on an SQLite file and flush it on exit."""
    store = SQLiteStore(db_path)
    session = LedgerSession.open(
        store, clock=clock, settings=settings, legacy_payload=legacy_payload
    )
    try:
        yield session
    finally:
        session.close()
