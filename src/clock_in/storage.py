"""Persistence collaborators for the ledger and the debounced save slot."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from .db import (
    delete_segments,
    fetch_segment_ids,
    fetch_segments,
    fetch_tags,
    get_meta,
    open_database,
    set_meta,
    transaction,
    upsert_segments,
    upsert_tags,
)
from .models import Segment, Tag

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    def load(self) -> tuple[list[Segment], list[Tag]]: ...

    def save(self, segments: Sequence[Segment], tags: Sequence[Tag]) -> None: ...

    def get_meta(self, key: str) -> Optional[str]: ...

    def set_meta(self, key: str, value: Optional[str]) -> None: ...

    def close(self) -> None: ...


class SQLiteStore:
    """Durable store backed by a single SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = open_database(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()

    def load(self) -> tuple[list[Segment], list[Tag]]:
        with self._lock:
            return fetch_segments(self._conn), fetch_tags(self._conn)

    def save(self, segments: Sequence[Segment], tags: Sequence[Tag]) -> None:
        with self._lock, transaction(self._conn) as conn:
            upsert_tags(conn, tags)
            upsert_segments(conn, segments)
            kept = {segment.id for segment in segments}
            stale = fetch_segment_ids(conn) - kept
            if stale:
                delete_segments(conn, stale)
        logger.debug("Saved %d segments and %d tags.", len(segments), len(tags))

    def get_meta(self, key: str) -> Optional[str]:
        with self._lock:
            return get_meta(self._conn, key)

    def set_meta(self, key: str, value: Optional[str]) -> None:
        with self._lock:
            set_meta(self._conn, key, value)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class MemoryStore:
    """Non-durable store that keeps copies of the last saved snapshot."""

    def __init__(
        self,
        segments: Sequence[Segment] = (),
        tags: Sequence[Tag] = (),
        meta: Optional[dict[str, Optional[str]]] = None,
    ) -> None:
        self.segments = [replace(segment) for segment in segments]
        self.tags = [replace(tag) for tag in tags]
        self.meta: dict[str, Optional[str]] = dict(meta or {})
        self.save_count = 0
        self.closed = False

    def load(self) -> tuple[list[Segment], list[Tag]]:
        return [replace(s) for s in self.segments], [replace(t) for t in self.tags]

    def save(self, segments: Sequence[Segment], tags: Sequence[Tag]) -> None:
        self.segments = [replace(segment) for segment in segments]
        self.tags = [replace(tag) for tag in tags]
        self.save_count += 1

    def get_meta(self, key: str) -> Optional[str]:
        return self.meta.get(key)

    def set_meta(self, key: str, value: Optional[str]) -> None:
        self.meta[key] = value

    def close(self) -> None:
        self.closed = True


class DebouncedSaver:
    """Coalesce bursts of writes into a single call after a quiet period.

    Only one write is ever pending; scheduling again replaces it. Failures
    are logged and swallowed because the in-memory ledger stays authoritative
    for the session.
    """

    def __init__(self, write: Callable[[], None], delay: timedelta) -> None:
        self._write = write
        self._delay = delay.total_seconds()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def schedule(self, *, immediate: bool = False) -> None:
        with self._lock:
            self._cancel_locked()
            if not immediate:
                timer = threading.Timer(self._delay, self._fire)
                timer.daemon = True
                self._timer = timer
                timer.start()
                return
        self._run()

    def flush(self) -> None:
        """Run any pending write now."""
        with self._lock:
            had_pending = self._cancel_locked()
        if had_pending:
            self._run()

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._write()
        except Exception:
            logger.exception("Failed to persist ledger; keeping in-memory state.")
