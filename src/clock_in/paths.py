"""Where the ledger keeps its files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from platformdirs import user_data_path

APP_NAME = "ClockIn"
DATA_DIR_ENV = "CLOCK_IN_DATA_DIR"
DB_FILENAME = "ledger.sqlite3"
LEGACY_FILENAME = "segments.json"


def get_data_dir() -> Path:
    """Return the data directory, creating it on first use.

    ``CLOCK_IN_DATA_DIR`` replaces the per-user platform location, which is
    handy for keeping a second ledger or for tests.
    """
    override = os.getenv(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        path = user_data_path(appname=APP_NAME, appauthor=False, roaming=True)
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_db_path(db_path: Optional[Path] = None) -> Path:
    """An explicit ``--db`` path wins; otherwise the ledger lives in the data directory."""
    if db_path is not None:
        return Path(db_path)
    return get_data_dir() / DB_FILENAME


def get_legacy_path() -> Path:
    return get_data_dir() / LEGACY_FILENAME
