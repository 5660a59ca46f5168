"""Ledger engine: the authoritative collection of tags and segments.

Every public mutation runs under a single re-entrant lock, validates before
touching state, and finishes by bumping ``version``, scheduling a debounced
save and notifying subscribers exactly once. Read properties return copies.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from operator import attrgetter
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError

from .cleaning import clean_segments, find_overlap
from .config import LedgerSettings, TagDefaults
from .dates import (
    ONE_DAY,
    DayLike,
    as_day,
    next_midnight,
    spans_midnight,
    start_of_day,
    truncate_to_minute,
)
from .errors import (
    InvalidRangeError,
    InvalidSplitError,
    OverlapError,
    SegmentEditError,
    SegmentNotFoundError,
    TagEditError,
    TagNotFoundError,
)
from .legacy import LegacySegment, decode_legacy_payload
from .models import Segment, Tag, UndoToken
from .normalization import normalize_tag_name, resolve_tag_name, tag_key
from .storage import DebouncedSaver, LedgerStore, MemoryStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
TagRef = Union[Tag, str]

LAST_NORMALIZED_DAY_KEY = "last_normalized_day"
LEGACY_IMPORTED_KEY = "legacy_imported"
TAG_IDS_MIGRATED_KEY = "tag_ids_migrated"

_by_start = attrgetter("start")
_by_order = attrgetter("order")


def system_clock() -> datetime:
    return datetime.now()


class Ledger:
    """Owns segments and tags and keeps them consistent."""

    def __init__(
        self,
        *,
        store: Optional[LedgerStore] = None,
        clock: Clock = system_clock,
        settings: Optional[LedgerSettings] = None,
        segments: Iterable[Segment] = (),
        tags: Iterable[Tag] = (),
    ) -> None:
        self.settings = settings or LedgerSettings()
        self._store: LedgerStore = store if store is not None else MemoryStore()
        self._clock = clock
        self._segments: list[Segment] = [replace(segment) for segment in segments]
        self._tags: list[Tag] = sorted((replace(tag) for tag in tags), key=_by_order)
        self._add_missing_idle_tag()
        self._lock = threading.RLock()
        self._listeners: list[Callable[[], None]] = []
        self._version = 0
        self._pending_undo: Optional[UndoToken] = None
        self._saver = DebouncedSaver(self._write_snapshot, self.settings.save_delay)

    @classmethod
    def open(
        cls,
        store: LedgerStore,
        *,
        clock: Clock = system_clock,
        settings: Optional[LedgerSettings] = None,
        legacy_payload: Union[bytes, str, None] = None,
    ) -> "Ledger":
        """Load a ledger from ``store`` and run the launch-time repairs."""
        segments, tags = store.load()
        ledger = cls(store=store, clock=clock, settings=settings, segments=segments, tags=tags)
        ledger.ensure_default_tags()
        ledger.migrate_legacy_if_needed(legacy_payload)
        ledger.migrate_segments_to_tag_ids()
        ledger.ensure_single_running_segment_on_launch()
        ledger.normalize_segments_across_midnight()
        ledger.flush()
        logger.info(
            "Ledger opened with %d segments and %d tags.",
            len(ledger._segments),
            len(ledger._tags),
        )
        return ledger

    # -- change notification -------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` after every completed mutation; returns an unsubscriber."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _commit(self, *, segments_changed: bool = True, immediate: bool = False) -> None:
        self._version += 1
        if segments_changed:
            self._pending_undo = None
        self._saver.schedule(immediate=immediate)
        for listener in list(self._listeners):
            listener()

    # -- persistence -----------------------------------------------------------

    def flush(self) -> None:
        """Write the current state synchronously."""
        self._saver.schedule(immediate=True)

    def close(self) -> None:
        """Write any change still waiting on the debounce timer, then release the store."""
        self._saver.flush()
        self._store.close()

    def _write_snapshot(self) -> None:
        with self._lock:
            segments = [replace(segment) for segment in sorted(self._segments, key=_by_start)]
            tags = [replace(tag) for tag in self._tags]
            self._store.save(segments, tags)

    def _get_meta(self, key: str) -> Optional[str]:
        try:
            return self._store.get_meta(key)
        except Exception:
            logger.exception("Failed to read ledger flag %s.", key)
            return None

    def _set_meta(self, key: str, value: str) -> None:
        try:
            self._store.set_meta(key, value)
        except Exception:
            logger.exception("Failed to write ledger flag %s.", key)

    # -- reads -----------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    @property
    def segments(self) -> list[Segment]:
        with self._lock:
            return [replace(segment) for segment in sorted(self._segments, key=_by_start)]

    @property
    def tags(self) -> list[Tag]:
        with self._lock:
            return [replace(tag) for tag in self._tags]

    @property
    def visible_tags(self) -> list[Tag]:
        with self._lock:
            return [replace(tag) for tag in self._tags if not tag.is_hidden]

    @property
    def current_segment(self) -> Optional[Segment]:
        with self._lock:
            active = self._active_segment()
            return replace(active) if active is not None else None

    @property
    def current_tag(self) -> Tag:
        with self._lock:
            active = self._active_segment()
            if active is not None:
                return replace(self._tag_for_segment_locked(active))
            return replace(self._idle_tag())

    @property
    def idle_tag(self) -> Tag:
        with self._lock:
            return replace(self._idle_tag())

    @property
    def pending_undo(self) -> Optional[UndoToken]:
        return self._pending_undo

    @property
    def can_undo(self) -> bool:
        return self._pending_undo is not None

    def tag(self, tag_id: Optional[str]) -> Optional[Tag]:
        with self._lock:
            found = self._tag_by_id(tag_id)
            return replace(found) if found is not None else None

    def find_tag(self, name: str) -> Optional[Tag]:
        """Case-insensitive lookup that never creates a tag."""
        normalized = normalize_tag_name(name)
        if normalized is None:
            return None
        with self._lock:
            found = self._tag_by_name(normalized)
            return replace(found) if found is not None else None

    def tag_for_segment(self, segment: Segment) -> Tag:
        with self._lock:
            stored = self._segment_by_id(segment.id)
            return replace(self._tag_for_segment_locked(stored or segment))

    def segments_for_day(self, day: DayLike) -> list[Segment]:
        with self._lock:
            return [replace(segment) for segment in self._segments_for_day_locked(day)]

    def totals_by_tag(self, day: DayLike, now: Optional[datetime] = None) -> dict[str, float]:
        """Seconds per tag id over the cleaned projection of ``day``."""
        with self._lock:
            now = self._now(now)
            idle = self._idle_tag()
            totals = {tag.id: 0.0 for tag in self._tags}
            cleaned = clean_segments(
                self._segments_for_day_locked(day),
                now,
                merge_gap=self.settings.merge_gap,
                noise_threshold=self.settings.noise_threshold,
            )
            for segment in cleaned:
                tag = self._tag_by_id(segment.tag_id) or idle
                totals[tag.id] = totals.get(tag.id, 0.0) + segment.duration_seconds(now)
            return totals

    def total_tracked(self, day: DayLike, now: Optional[datetime] = None) -> float:
        return sum(self.totals_by_tag(day, now).values())

    # -- segment mutations -----------------------------------------------------

    def switch_tag(self, tag: TagRef, now: Optional[datetime] = None) -> Optional[UndoToken]:
        """Close the active segment at ``now`` and open one for ``tag``.

        Returns an undo token when a segment was closed, ``None`` otherwise.
        Switching to the tag that is already running changes nothing.
        """
        with self._lock:
            now = self._now(now)
            target = self._resolve_tag(tag)
            active = self._active_segment()
            if active is not None and self._tag_for_segment_locked(active).id == target.id:
                logger.debug("Already tracking %s; switch ignored.", target.name)
                return None
            if active is None:
                self._start_segment(target, now)
                self._commit()
                return None

            previous_end = active.end
            active.end = now
            created = self._start_segment(target, now)
            self._commit()
            token = UndoToken(
                removed_segment_id=created.id,
                restored_segment_id=active.id,
                restored_previous_end=previous_end,
            )
            self._pending_undo = token
            logger.debug("Switched to %s at %s.", target.name, now)
            return token

    def undo_last_switch(self, token: Optional[UndoToken]) -> bool:
        """Reverse the latest switch. Tokens made stale by later mutations are ignored."""
        with self._lock:
            if token is None or token != self._pending_undo:
                logger.warning("Ignoring stale undo token %s.", token)
                return False
            self._segments = [
                segment for segment in self._segments if segment.id != token.removed_segment_id
            ]
            restored = self._segment_by_id(token.restored_segment_id)
            if restored is not None:
                restored.end = token.restored_previous_end
            self._commit()
            return True

    def update_segment(
        self,
        segment_id: str,
        tag: TagRef,
        start: datetime,
        end: Optional[datetime],
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Segment:
        with self._lock:
            now = self._now(now)
            segment = self._require_segment(segment_id)
            target = self._resolve_tag(tag)
            self._validate_edit(segment_id, start, end, now)

            if end is None:
                for other in self._segments:
                    if other.end is None and other.id != segment_id:
                        other.end = start
                        logger.info("Closed active segment %s at %s.", other.id, start)

            segment.tag_id = target.id
            segment.tag_name = target.name
            segment.start = start
            segment.end = end
            segment.note = note
            self._commit()
            return replace(segment)

    def validation_error_for_edit(
        self,
        segment_id: str,
        start: datetime,
        end: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Dry run of the ``update_segment`` checks; returns a message or ``None``."""
        with self._lock:
            try:
                self._validate_edit(segment_id, start, end, self._now(now))
            except SegmentEditError as exc:
                return str(exc)
            return None

    def delete_segment(self, segment_id: str, now: Optional[datetime] = None) -> None:
        with self._lock:
            now = self._now(now)
            segment = self._require_segment(segment_id)
            self._segments = [s for s in self._segments if s.id != segment_id]
            if segment.end is None:
                self._start_segment(self._idle_tag(), now)
            self._commit()

    def split_segment(
        self,
        segment_id: str,
        at: datetime,
        before_tag: TagRef,
        after_tag: TagRef,
        now: Optional[datetime] = None,
    ) -> tuple[Segment, Segment]:
        with self._lock:
            now = self._now(now)
            segment = self._require_segment(segment_id)
            before = self._resolve_tag(before_tag)
            after = self._resolve_tag(after_tag)
            split_minute = truncate_to_minute(at)
            if not (
                truncate_to_minute(segment.start)
                < split_minute
                < truncate_to_minute(segment.effective_end(now))
            ):
                raise InvalidSplitError()

            first = Segment(
                tag_id=before.id,
                tag_name=before.name,
                start=segment.start,
                end=at,
                note=segment.note,
            )
            second = Segment(
                tag_id=after.id,
                tag_name=after.name,
                start=at,
                end=segment.end,
                note=segment.note,
            )
            self._segments = [s for s in self._segments if s.id != segment_id]
            self._segments.extend([first, second])
            self._commit()
            return replace(first), replace(second)

    def merge_adjacent(self, day: DayLike, now: Optional[datetime] = None) -> list[Segment]:
        """Persist the cleaned projection of ``day`` in place of its stored segments."""
        with self._lock:
            now = self._now(now)
            day_segments = self._segments_for_day_locked(day)
            if not day_segments:
                return []
            cleaned = clean_segments(
                day_segments,
                now,
                merge_gap=self.settings.merge_gap,
                noise_threshold=self.settings.noise_threshold,
            )
            removed = {segment.id for segment in day_segments}
            self._segments = [s for s in self._segments if s.id not in removed]
            merged = []
            for segment in cleaned:
                tag = self._tag_by_id(segment.tag_id)
                merged.append(
                    Segment(
                        tag_id=segment.tag_id,
                        tag_name=tag.name if tag is not None else segment.tag_name,
                        start=segment.start,
                        end=segment.end,
                        note=segment.note,
                    )
                )
            self._segments.extend(merged)
            self._commit()
            logger.info(
                "Merged %d segments into %d for %s.", len(day_segments), len(merged), as_day(day)
            )
            return [replace(segment) for segment in merged]

    def end_day_and_reset(self, now: Optional[datetime] = None) -> None:
        with self._lock:
            now = self._now(now)
            self._rollover_locked(True, now)
            active = self._active_segment()
            if active is not None:
                active.end = now
            self._start_segment(self._idle_tag(), now)
            self._commit()

    # -- repairs ---------------------------------------------------------------

    def check_day_rollover(self, continue_tag: bool, now: Optional[datetime] = None) -> bool:
        """Close an active segment left over from an earlier day.

        With ``continue_tag`` the running tag is carried across every midnight
        with one filler segment per elapsed day; otherwise today starts idle.
        """
        with self._lock:
            if not self._rollover_locked(continue_tag, self._now(now)):
                return False
            self._commit()
            return True

    def normalize_segments_across_midnight(
        self, now: Optional[datetime] = None, *, force: bool = False
    ) -> bool:
        """Split closed segments spanning midnight; runs once per day unless forced."""
        with self._lock:
            today = as_day(self._now(now)).isoformat()
            if not force and self._get_meta(LAST_NORMALIZED_DAY_KEY) == today:
                return False

            normalized: list[Segment] = []
            split_count = 0
            for segment in self._segments:
                if segment.end is None or not spans_midnight(segment.start, segment.end):
                    normalized.append(segment)
                    continue
                split_count += 1
                normalized.extend(self._split_at_midnights(segment, segment.end))

            self._set_meta(LAST_NORMALIZED_DAY_KEY, today)
            if not split_count:
                return False
            self._segments = normalized
            self._commit(immediate=True)
            logger.info("Split %d segments spanning midnight.", split_count)
            return True

    def ensure_single_running_segment_on_launch(self, now: Optional[datetime] = None) -> None:
        with self._lock:
            now = self._now(now)
            actives = self._active_segments()
            if not actives:
                self._start_segment(self._idle_tag(), now)
                logger.info("No active segment found; started idle at %s.", now)
            else:
                newest = actives[-1]
                self._close_extra_actives_locked()
                today = start_of_day(now)
                if newest.start < today:
                    newest.end = today
                    self._start_segment(self._idle_tag(), today)
                    logger.info("Active segment %s predates today; closed it.", newest.id)
            self._commit(immediate=True)

    def _close_extra_actives_locked(self) -> None:
        actives = self._active_segments()
        for stale in actives[:-1]:
            stale.end = actives[-1].start
        if len(actives) > 1:
            logger.info("Closed %d extra active segments.", len(actives) - 1)

    def _rollover_locked(self, continue_tag: bool, now: datetime) -> bool:
        active = self._active_segment()
        today = start_of_day(now)
        if active is None or active.start >= today:
            return False

        if continue_tag:
            tag = self._tag_for_segment_locked(active)
            boundary = next_midnight(active.start)
            active.end = min(boundary, today)
            while boundary < today:
                following = boundary + ONE_DAY
                self._segments.append(
                    Segment(
                        tag_id=tag.id,
                        tag_name=tag.name,
                        start=boundary,
                        end=min(following, today),
                    )
                )
                boundary = following
            self._start_segment(tag, today)
        else:
            active.end = today
            self._start_segment(self._idle_tag(), today)
        logger.info("Rolled over segment %s started %s.", active.id, active.start)
        return True

    def _split_at_midnights(self, segment: Segment, end: datetime) -> list[Segment]:
        tag = self._tag_by_id(segment.tag_id)
        name = tag.name if tag is not None else segment.tag_name
        pieces: list[Segment] = []
        current = segment.start
        boundary = next_midnight(current)
        while boundary < end:
            pieces.append(
                Segment(
                    tag_id=segment.tag_id,
                    tag_name=name,
                    start=current,
                    end=boundary,
                    note=segment.note,
                )
            )
            current = boundary
            boundary = next_midnight(current)
        pieces.append(
            Segment(
                tag_id=segment.tag_id,
                tag_name=name,
                start=current,
                end=end,
                note=segment.note,
            )
        )
        return pieces

    # -- tags ------------------------------------------------------------------

    def ensure_default_tags(self) -> None:
        with self._lock:
            if any(not tag.is_system for tag in self._tags):
                return
            idle = self._idle_tag()
            for index, name in enumerate(TagDefaults.names):
                if name == TagDefaults.idle_name:
                    idle.order = index
                else:
                    self._tags.append(Tag(name=name, order=index))
            self._tags.sort(key=_by_order)
            self._commit(segments_changed=False, immediate=True)

    def tag_for_name(self, name: Optional[str]) -> Tag:
        """Resolve ``name`` case-insensitively, creating the tag when unknown."""
        with self._lock:
            tag, created = self._tag_for_name_locked(name)
            if created:
                self._commit(segments_changed=False)
            return replace(tag)

    def create_tag(self, name: str) -> Tag:
        with self._lock:
            normalized = normalize_tag_name(name)
            if normalized is None:
                raise TagEditError("Tag name must not be blank.")
            if self._tag_by_name(normalized) is not None:
                raise TagEditError(f"A tag named {normalized!r} already exists.")
            tag, _ = self._tag_for_name_locked(normalized)
            self._commit(segments_changed=False)
            return replace(tag)

    def rename_tag(self, tag_id: str, name: str) -> Tag:
        with self._lock:
            tag = self._require_tag(tag_id)
            if tag.is_system:
                raise TagEditError("The idle tag cannot be renamed.")
            normalized = normalize_tag_name(name)
            if normalized is None:
                raise TagEditError("Tag name must not be blank.")
            existing = self._tag_by_name(normalized)
            if existing is not None and existing.id != tag.id:
                raise TagEditError(f"A tag named {normalized!r} already exists.")
            tag.name = normalized
            for segment in self._segments:
                if segment.tag_id == tag.id:
                    segment.tag_name = normalized
            self._commit(segments_changed=False)
            return replace(tag)

    def set_tag_hidden(self, tag_id: str, hidden: bool) -> Tag:
        with self._lock:
            tag = self._require_tag(tag_id)
            if tag.is_system and hidden:
                raise TagEditError("The idle tag is always shown.")
            tag.is_hidden = hidden
            self._commit(segments_changed=False)
            return replace(tag)

    def move_tag(self, tag_id: str, index: int) -> list[Tag]:
        """Move a tag to ``index`` in display order and renumber all tags."""
        with self._lock:
            tag = self._require_tag(tag_id)
            ordered = [t for t in self._tags if t.id != tag.id]
            ordered.insert(max(0, min(index, len(ordered))), tag)
            for position, item in enumerate(ordered):
                item.order = position
            self._tags = ordered
            self._commit(segments_changed=False)
            return [replace(t) for t in self._tags]

    # -- migrations ------------------------------------------------------------

    def migrate_legacy_if_needed(self, payload: Union[bytes, str, None]) -> int:
        """Fold a legacy export into an empty ledger, at most once."""
        with self._lock:
            if self._get_meta(LEGACY_IMPORTED_KEY):
                return 0
            imported = 0
            if self._segments:
                logger.info("Ledger already has segments; skipping legacy import.")
            elif payload is not None:
                try:
                    records = decode_legacy_payload(payload)
                except ValidationError:
                    logger.warning("Could not decode legacy segments; skipping import.", exc_info=True)
                else:
                    imported = self._import_records_locked(records, self._clock())
            self._set_meta(LEGACY_IMPORTED_KEY, "1")
            if imported:
                self._commit(immediate=True)
                logger.info("Imported %d legacy segments.", imported)
            return imported

    def import_legacy(self, records: Iterable[LegacySegment]) -> int:
        """Insert decoded records whose ids are not already present.

        Records that would overlap a segment already in the ledger, or whose
        end does not come after their start, are logged and left out.
        """
        with self._lock:
            imported = self._import_records_locked(records, self._clock())
            if imported:
                self._close_extra_actives_locked()
                self._commit(immediate=True)
            return imported

    def migrate_segments_to_tag_ids(self) -> int:
        with self._lock:
            if self._get_meta(TAG_IDS_MIGRATED_KEY):
                return 0
            migrated = 0
            for segment in self._segments:
                if segment.tag_id is None:
                    tag, _ = self._tag_for_name_locked(segment.tag_name)
                    segment.tag_id = tag.id
                    segment.tag_name = tag.name
                    migrated += 1
            self._set_meta(TAG_IDS_MIGRATED_KEY, "1")
            if migrated:
                self._commit(immediate=True)
                logger.info("Assigned tag ids to %d segments.", migrated)
            return migrated

    def _import_records_locked(self, records: Iterable[LegacySegment], now: datetime) -> int:
        known = {segment.id for segment in self._segments}
        imported = 0
        for record in records:
            segment_id = str(record.id)
            if segment_id in known:
                continue
            if record.end is not None and record.start >= record.end:
                logger.warning(
                    "Skipping legacy segment %s; it does not end after it starts.", segment_id
                )
                continue
            clash = find_overlap(self._segments, record.start, record.end, now)
            if clash is not None:
                logger.warning(
                    "Skipping legacy segment %s; it overlaps segment %s.", segment_id, clash.id
                )
                continue
            tag, _ = self._tag_for_name_locked(record.tag)
            self._segments.append(
                Segment(
                    id=segment_id,
                    tag_id=tag.id,
                    tag_name=tag.name,
                    start=record.start,
                    end=record.end,
                    note=record.note,
                )
            )
            known.add(segment_id)
            imported += 1
        return imported

    # -- internals -------------------------------------------------------------

    def _validate_edit(
        self,
        segment_id: str,
        start: datetime,
        end: Optional[datetime],
        now: datetime,
    ) -> None:
        if end is not None and start >= end:
            raise InvalidRangeError()
        if find_overlap(self._segments, start, end, now, excluding=segment_id) is not None:
            raise OverlapError()
        if end is None:
            # Reopening closes the other active segment at start, which must come after it.
            for other in self._active_segments():
                if other.id != segment_id and other.start >= start:
                    raise OverlapError()

    def _active_segments(self) -> list[Segment]:
        return sorted((s for s in self._segments if s.is_active), key=_by_start)

    def _active_segment(self) -> Optional[Segment]:
        actives = self._active_segments()
        return actives[-1] if actives else None

    def _segments_for_day_locked(self, day: DayLike) -> list[Segment]:
        target = as_day(day)
        return sorted((s for s in self._segments if s.start.date() == target), key=_by_start)

    def _segment_by_id(self, segment_id: str) -> Optional[Segment]:
        for segment in self._segments:
            if segment.id == segment_id:
                return segment
        return None

    def _require_segment(self, segment_id: str) -> Segment:
        segment = self._segment_by_id(segment_id)
        if segment is None:
            raise SegmentNotFoundError(segment_id)
        return segment

    def _start_segment(self, tag: Tag, start: datetime) -> Segment:
        segment = Segment(tag_id=tag.id, tag_name=tag.name, start=start)
        self._segments.append(segment)
        return segment

    def _tag_by_id(self, tag_id: Optional[str]) -> Optional[Tag]:
        if tag_id is None:
            return None
        for tag in self._tags:
            if tag.id == tag_id:
                return tag
        return None

    def _tag_by_name(self, name: str) -> Optional[Tag]:
        key = tag_key(name)
        for tag in self._tags:
            if tag_key(tag.name) == key:
                return tag
        return None

    def _require_tag(self, tag_id: str) -> Tag:
        tag = self._tag_by_id(tag_id)
        if tag is None:
            raise TagNotFoundError(tag_id)
        return tag

    def _resolve_tag(self, tag: TagRef) -> Tag:
        return self._require_tag(tag.id if isinstance(tag, Tag) else tag)

    def _tag_for_segment_locked(self, segment: Segment) -> Tag:
        tag = self._tag_by_id(segment.tag_id)
        if tag is None:
            return self._idle_tag()
        if segment.tag_name != tag.name:
            segment.tag_name = tag.name
        return tag

    def _next_order(self) -> int:
        return max((tag.order for tag in self._tags), default=-1) + 1

    def _idle_tag(self) -> Tag:
        for tag in self._tags:
            if tag.is_system or tag.name == TagDefaults.idle_name:
                return tag
        raise LookupError("ledger has no idle tag")

    def _add_missing_idle_tag(self) -> None:
        # Reads assume the idle tag exists; only __init__ may add it.
        if any(tag.is_system or tag.name == TagDefaults.idle_name for tag in self._tags):
            return
        idle = Tag(name=TagDefaults.idle_name, order=self._next_order(), is_system=True)
        self._tags.append(idle)
        logger.info("Created missing idle tag %s.", idle.id)

    def _tag_for_name_locked(self, name: Optional[str]) -> tuple[Tag, bool]:
        resolved = resolve_tag_name(name)
        existing = self._tag_by_name(resolved)
        if existing is not None:
            return existing, False
        tag = Tag(name=resolved, order=self._next_order())
        self._tags.append(tag)
        self._tags.sort(key=_by_order)
        logger.debug("Created tag %s.", resolved)
        return tag, True
