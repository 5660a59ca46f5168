"""Launch the local ledger API under uvicorn."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import LedgerSettings
from .legacy import read_legacy_export
from .paths import get_legacy_path, resolve_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[LedgerSettings] = None,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted; optionally open the docs page once it is up.

    A legacy ``segments.json`` left in the data directory is folded into an
    empty ledger on the first launch.
    """
    app = create_app(
        db_path=resolve_db_path(db_path),
        settings=settings or LedgerSettings(),
        legacy_payload=read_legacy_export(get_legacy_path()),
    )
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))

    if open_browser:
        threading.Thread(
            target=_open_when_started,
            args=(server, f"http://{host}:{port}/docs"),
            daemon=True,
        ).start()

    logger.info("Serving ledger API on http://%s:%d", host, port)
    server.run()


def _open_when_started(server: uvicorn.Server, url: str, timeout: float = 10.0) -> None:
    waited = 0.0
    while not server.started and waited < timeout:
        time.sleep(0.1)
        waited += 0.1
    if not server.started:
        logger.warning("Server did not start within %.0fs; not opening %s", timeout, url)
        return
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Failed to launch browser for %s", url)
