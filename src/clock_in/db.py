"""SQLite database layer for tags, segments and ledger flags."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .models import Segment, Tag


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN")
    try:
        yield conn
    except Exception:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def initialize_schema(conn: sqlite3.Connection) -> None:
    # segments.tag_id is a weak reference; tags are never hard-deleted.
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS tags (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_hidden INTEGER NOT NULL DEFAULT 0,
            is_system INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS segments (
            id TEXT PRIMARY KEY,
            tag_id TEXT,
            tag TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            note TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_segments_start_time
            ON segments(start_time);

        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT
        );
        """
    )


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(DATETIME_FMT) if value is not None else None


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, DATETIME_FMT) if value else None


def fetch_tags(conn: sqlite3.Connection) -> list[Tag]:
    rows = conn.execute(
        """
        SELECT id, name, sort_order, is_hidden, is_system
        FROM tags
        ORDER BY sort_order, name;
        """
    )
    return [
        Tag(
            id=row["id"],
            name=row["name"],
            order=row["sort_order"],
            is_hidden=bool(row["is_hidden"]),
            is_system=bool(row["is_system"]),
        )
        for row in rows
    ]


def fetch_segments(conn: sqlite3.Connection) -> list[Segment]:
    rows = conn.execute(
        """
        SELECT id, tag_id, tag, start_time, end_time, note
        FROM segments
        ORDER BY start_time;
        """
    )
    return [
        Segment(
            id=row["id"],
            tag_id=row["tag_id"],
            tag_name=row["tag"],
            start=parse_datetime(row["start_time"]),
            end=parse_datetime(row["end_time"]),
            note=row["note"],
        )
        for row in rows
    ]


def upsert_tags(conn: sqlite3.Connection, tags: Iterable[Tag]) -> None:
    conn.executemany(
        """
        INSERT INTO tags (id, name, sort_order, is_hidden, is_system)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            sort_order = excluded.sort_order,
            is_hidden = excluded.is_hidden,
            is_system = excluded.is_system
        """,
        [
            (
                tag.id,
                tag.name,
                tag.order,
                1 if tag.is_hidden else 0,
                1 if tag.is_system else 0,
            )
            for tag in tags
        ],
    )


def upsert_segments(conn: sqlite3.Connection, segments: Iterable[Segment]) -> None:
    conn.executemany(
        """
        INSERT INTO segments (id, tag_id, tag, start_time, end_time, note)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            tag_id = excluded.tag_id,
            tag = excluded.tag,
            start_time = excluded.start_time,
            end_time = excluded.end_time,
            note = excluded.note
        """,
        [
            (
                segment.id,
                segment.tag_id,
                segment.tag_name,
                format_datetime(segment.start),
                format_datetime(segment.end),
                segment.note,
            )
            for segment in segments
        ],
    )


def delete_segments(conn: sqlite3.Connection, segment_ids: Iterable[str]) -> None:
    conn.executemany(
        "DELETE FROM segments WHERE id = ?",
        [(segment_id,) for segment_id in segment_ids],
    )


def fetch_segment_ids(conn: sqlite3.Connection) -> set[str]:
    return {row["id"] for row in conn.execute("SELECT id FROM segments")}


def get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    return row["value"] if row is not None else None


def set_meta(conn: sqlite3.Connection, key: str, value: Optional[str]) -> None:
    conn.execute(
        """
        INSERT INTO meta (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
