"""Command-line interface for the activity ledger."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config import LedgerSettings
from .errors import LedgerError
from .legacy import decode_legacy_payload, read_legacy_export
from .paths import get_legacy_path, resolve_db_path
from .server_runner import run_dashboard
from .session import open_session

app = typer.Typer(help="Personal activity ledger.")

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the ledger SQLite database.",
)
DATE_OPTION = typer.Option(
    None,
    "--date",
    help="Date (YYYY-MM-DD). Defaults to today.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def status(db_path: Optional[Path] = DB_OPTION) -> None:
    """Show the running tag and how long it has been running."""
    from .reporting import format_short_duration

    with open_session(resolve_db_path(db_path)) as session:
        segment = session.ledger.current_segment
        tag = session.ledger.current_tag
        elapsed = segment.duration_seconds(session.now) if segment else 0.0
        print(f"{tag.name} · {format_short_duration(elapsed)}")


@app.command()
def switch(
    tag_name: str = typer.Argument(..., help="Tag to start tracking."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Close the running segment and start tracking another tag."""
    with open_session(resolve_db_path(db_path)) as session:
        tag = session.ledger.tag_for_name(tag_name)
        previous = session.ledger.current_tag
        if previous.id == tag.id:
            print(f"Already tracking {tag.name}.")
            return
        session.switch_tag(tag)
        print(f"Switched from {previous.name} to {tag.name}.")


@app.command()
def summary(
    date: Optional[str] = DATE_OPTION,
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print per-tag totals for a specific day."""
    from .reporting import SummaryPrinter, parse_day

    with open_session(resolve_db_path(db_path)) as session:
        target = parse_day(date, session.now.date())
        SummaryPrinter(session).print_daily_summary(target)


@app.command()
def week(
    date: Optional[str] = DATE_OPTION,
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print rolling 7-day totals ending on a specific day."""
    from .reporting import SummaryPrinter, parse_day

    with open_session(resolve_db_path(db_path)) as session:
        target = parse_day(date, session.now.date())
        SummaryPrinter(session).print_weekly_summary(target)


@app.command()
def segments(
    date: Optional[str] = DATE_OPTION,
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """List the stored segments of a day."""
    from .reporting import SummaryPrinter, parse_day

    with open_session(resolve_db_path(db_path)) as session:
        target = parse_day(date, session.now.date())
        SummaryPrinter(session).print_segments(target)


@app.command()
def merge(
    date: Optional[str] = DATE_OPTION,
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Coalesce a day's segments and store the result."""
    from .reporting import parse_day

    with open_session(resolve_db_path(db_path)) as session:
        target = parse_day(date, session.now.date())
        merged = session.merge_adjacent(target)
        print(f"{target.isoformat()}: {len(merged)} segments after merging.")


@app.command()
def tags(db_path: Optional[Path] = DB_OPTION) -> None:
    """List tags in display order."""
    with open_session(resolve_db_path(db_path)) as session:
        for tag in session.ledger.tags:
            flags = []
            if tag.is_system:
                flags.append("system")
            if tag.is_hidden:
                flags.append("hidden")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            print(f"{tag.order:>3}  {tag.name}{suffix}")


@app.command("add-tag")
def add_tag(
    name: str = typer.Argument(..., help="Name of the new tag."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Create a new tag."""
    with open_session(resolve_db_path(db_path)) as session:
        try:
            tag = session.ledger.create_tag(name)
        except LedgerError as exc:
            raise typer.BadParameter(str(exc)) from exc
        print(f"Created {tag.name}.")


@app.command("import-legacy")
def import_legacy(
    source: Optional[Path] = typer.Argument(
        None,
        dir_okay=False,
        help="Legacy JSON export. Defaults to segments.json in the data directory.",
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Fold a legacy segment export into the ledger, skipping segments already present."""
    source = source or get_legacy_path()
    payload = read_legacy_export(source)
    if payload is None:
        raise typer.BadParameter(f"No legacy export at {source}.")
    try:
        records = decode_legacy_payload(payload)
    except ValidationError as exc:
        raise typer.BadParameter(f"Could not decode {source}: {exc.error_count()} errors.") from exc

    with open_session(resolve_db_path(db_path)) as session:
        imported = session.ledger.import_legacy(records)
        print(
            f"Imported {imported} of {len(records)} legacy segments; "
            f"ledger holds {len(session.ledger.segments)}."
        )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DB_OPTION,
    tick_seconds: float = typer.Option(
        5.0,
        "--tick",
        min=1.0,
        help="Tick interval in seconds while a view is open.",
    ),
    idle_tick_seconds: Optional[float] = typer.Option(
        None,
        "--idle-tick",
        min=5.0,
        help="Tick interval in seconds with no view open (defaults to 60).",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the API docs in your default browser.",
    ),
) -> None:
    """Serve the ledger API with the background tick loop."""
    settings = LedgerSettings.from_intervals(
        active_tick_seconds=tick_seconds,
        inactive_tick_seconds=idle_tick_seconds,
    )
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path,
        settings=settings,
        open_browser=open_browser,
    )
