"""FastAPI application exposing the ledger as a local JSON API."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import LedgerSettings
from .errors import SegmentEditError, SegmentNotFoundError, TagEditError, TagNotFoundError
from .ledger import Clock, system_clock
from .models import Segment, Tag
from .paths import resolve_db_path
from .session import LedgerSession, TickRunner
from .storage import SQLiteStore

logger = logging.getLogger(__name__)


class SegmentUpdate(BaseModel):
    tag_id: str
    start: datetime
    end: Optional[datetime] = None
    note: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class SplitRequest(BaseModel):
    at: datetime
    before_tag_id: str
    after_tag_id: str

    model_config = ConfigDict(extra="forbid")


class SwitchRequest(BaseModel):
    tag_id: str

    model_config = ConfigDict(extra="forbid")


class TagCreate(BaseModel):
    name: str

    model_config = ConfigDict(extra="forbid")


class TagUpdate(BaseModel):
    name: Optional[str] = None
    is_hidden: Optional[bool] = None
    index: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class ViewVisibility(BaseModel):
    visible: bool

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[LedgerSettings] = None,
    clock: Clock = system_clock,
    legacy_payload: Union[bytes, str, None] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = resolve_db_path(db_path)
    session = LedgerSession.open(
        SQLiteStore(resolved_db_path),
        clock=clock,
        settings=settings or LedgerSettings(),
        legacy_payload=legacy_payload,
    )
    runner = TickRunner(session)

    app = FastAPI(title="ClockIn", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.session = session
    app.state.tick_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()
        session.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current = session.ledger.current_segment
        return {
            "ticker_running": request.app.state.tick_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "tick_seconds": session.tick_interval,
            "current_tag": _tag_payload(session.ledger.current_tag),
            "current_segment": _segment_payload(session, current) if current else None,
            "can_undo": session.can_undo,
        }

    @app.get("/api/tags")
    def list_tags(
        visible_only: bool = Query(default=False, description="Hide tags marked hidden."),
    ) -> Dict[str, Any]:
        tags = session.ledger.visible_tags if visible_only else session.ledger.tags
        return {"tags": [_tag_payload(tag) for tag in tags]}

    @app.post("/api/tags", status_code=201)
    def create_tag(payload: TagCreate) -> Dict[str, Any]:
        with _translate_errors():
            tag = session.ledger.create_tag(payload.name)
        return _tag_payload(tag)

    @app.patch("/api/tags/{tag_id}")
    def update_tag(tag_id: str, payload: TagUpdate) -> Dict[str, Any]:
        ledger = session.ledger
        with _translate_errors():
            if payload.name is not None:
                ledger.rename_tag(tag_id, payload.name)
            if payload.is_hidden is not None:
                ledger.set_tag_hidden(tag_id, payload.is_hidden)
            if payload.index is not None:
                ledger.move_tag(tag_id, payload.index)
            tag = ledger.tag(tag_id)
            if tag is None:
                raise TagNotFoundError(tag_id)
        return _tag_payload(tag)

    @app.get("/api/segments")
    def segments(
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date, session)
        rows = session.ledger.segments_for_day(target_day)
        return {
            "date": target_day.isoformat(),
            "segments": [_segment_payload(session, segment) for segment in rows],
        }

    @app.patch("/api/segments/{segment_id}")
    def update_segment(segment_id: str, payload: SegmentUpdate) -> Dict[str, Any]:
        with _translate_errors():
            segment = session.update_segment(
                segment_id,
                payload.tag_id,
                _to_local(payload.start),
                _to_local(payload.end),
                payload.note,
            )
        return _segment_payload(session, segment)

    @app.post("/api/segments/{segment_id}/validate")
    def validate_segment(segment_id: str, payload: SegmentUpdate) -> Dict[str, Any]:
        error = session.validation_error_for_edit(
            segment_id, _to_local(payload.start), _to_local(payload.end)
        )
        return {"valid": error is None, "error": error}

    @app.delete("/api/segments/{segment_id}", status_code=204)
    def delete_segment(segment_id: str) -> None:
        with _translate_errors():
            session.delete_segment(segment_id)

    @app.post("/api/segments/{segment_id}/split")
    def split_segment(segment_id: str, payload: SplitRequest) -> Dict[str, Any]:
        with _translate_errors():
            first, second = session.split_segment(
                segment_id,
                _to_local(payload.at),
                payload.before_tag_id,
                payload.after_tag_id,
            )
        return {"segments": [_segment_payload(session, first), _segment_payload(session, second)]}

    @app.post("/api/merge")
    def merge(
        date: Optional[str] = Query(default=None, description="Day to coalesce (YYYY-MM-DD)."),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date, session)
        merged = session.merge_adjacent(target_day)
        return {
            "date": target_day.isoformat(),
            "segments": [_segment_payload(session, segment) for segment in merged],
        }

    @app.post("/api/switch")
    def switch(payload: SwitchRequest) -> Dict[str, Any]:
        with _translate_errors():
            token = session.switch_tag(payload.tag_id)
        current = session.ledger.current_segment
        return {
            "current_segment": _segment_payload(session, current) if current else None,
            "can_undo": token is not None,
        }

    @app.post("/api/undo")
    def undo() -> Dict[str, Any]:
        undone = session.undo_last_switch()
        if not undone:
            raise HTTPException(status_code=409, detail="Nothing to undo")
        current = session.ledger.current_segment
        return {"current_segment": _segment_payload(session, current) if current else None}

    @app.post("/api/views/{view}")
    def set_view_visible(view: str, payload: ViewVisibility) -> Dict[str, Any]:
        session.set_view_visible(view, payload.visible)
        return {"tick_seconds": session.tick_interval}

    @app.get("/api/summary")
    def summary(
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date, session)
        cache = session.cache
        totals = cache.totals_by_tag(target_day)
        return {
            "date": target_day.isoformat(),
            "totals": {
                "tracked_seconds": cache.total_tracked(target_day),
                "active_seconds": cache.active_time_for_day(target_day),
                "focused_seconds": cache.focused_time_for_day(target_day),
                "maintenance_seconds": cache.maintenance_time_for_day(target_day),
                "idle_seconds": cache.idle_time_for_day(target_day),
            },
            "entries": _tag_totals_payload(session, totals),
        }

    @app.get("/api/week")
    def week(
        date: Optional[str] = Query(
            default=None,
            description="Last day of the 7-day window in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        anchor = _parse_date(date, session)
        cache = session.cache
        tracked_days = cache.tracked_days_count(anchor)
        active = cache.active_time_for_window(anchor)
        return {
            "anchor": anchor.isoformat(),
            "days": [
                {"date": day.isoformat(), "active_seconds": cache.active_time_for_day(day)}
                for day in cache.window_days(anchor)
            ],
            "totals": {
                "active_seconds": active,
                "focused_seconds": cache.focused_time_for_window(anchor),
                "maintenance_seconds": cache.maintenance_time_for_window(anchor),
                "idle_seconds": cache.idle_time_for_window(anchor),
            },
            "tracked_days": tracked_days,
            "average_active_seconds": active / tracked_days if tracked_days else None,
            "entries": _tag_totals_payload(session, cache.active_totals_by_tag_for_window(anchor)),
        }

    return app


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map ledger exceptions onto HTTP errors."""
    try:
        yield
    except (SegmentNotFoundError, TagNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (SegmentEditError, TagEditError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _parse_date(value: Optional[str], session: LedgerSession) -> date:
    if not value:
        return session.ledger.now().date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _to_local(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _tag_payload(tag: Tag) -> Dict[str, Any]:
    return {
        "id": tag.id,
        "name": tag.name,
        "order": tag.order,
        "is_hidden": tag.is_hidden,
        "is_system": tag.is_system,
    }


def _segment_payload(session: LedgerSession, segment: Segment) -> Dict[str, Any]:
    tag = session.ledger.tag_for_segment(segment)
    return {
        "id": segment.id,
        "tag_id": tag.id,
        "tag": tag.name,
        "start": segment.start.isoformat(),
        "end": segment.end.isoformat() if segment.end else None,
        "note": segment.note,
        "duration_seconds": segment.duration_seconds(session.ledger.now()),
    }


def _tag_totals_payload(session: LedgerSession, totals: Dict[str, float]) -> list[Dict[str, Any]]:
    names = {tag.id: tag.name for tag in session.ledger.tags}
    entries = [
        {"tag_id": tag_id, "tag": names.get(tag_id), "seconds": seconds}
        for tag_id, seconds in totals.items()
        if seconds > 0
    ]
    entries.sort(key=lambda item: item["seconds"], reverse=True)
    return entries
