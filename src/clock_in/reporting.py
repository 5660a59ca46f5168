"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import date

from .dates import DayLike, as_day
from .session import LedgerSession


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, session: LedgerSession) -> None:
        self.session = session

    def print_daily_summary(self, day: DayLike) -> None:
        cache = self.session.cache
        totals = cache.totals_by_tag(day)
        if not any(totals.values()):
            print("No activity recorded for the selected day.")
            return

        print(f"Summary for {as_day(day).isoformat()}")
        print("-" * 40)
        print(f"Active time:      {format_duration(cache.active_time_for_day(day))}")
        print(f"  Focused:        {format_duration(cache.focused_time_for_day(day))}")
        print(f"  Maintenance:    {format_duration(cache.maintenance_time_for_day(day))}")
        print(f"Idle time:        {format_duration(cache.idle_time_for_day(day))}")
        print()

        entries = rank_tags(self.session, totals)
        if entries:
            print("By tag:")
            for name, seconds in entries:
                print(f"  {name:<30} {format_duration(seconds)}")

    def print_weekly_summary(self, anchor: DayLike) -> None:
        cache = self.session.cache
        days = cache.window_days(anchor)
        tracked = cache.tracked_days_count(anchor)
        active = cache.active_time_for_window(anchor)
        idle = cache.idle_time_for_window(anchor)

        print(f"Week ending {as_day(anchor).isoformat()}")
        print("-" * 40)
        print(f"Active time:   {format_duration(active)}")
        print(f"Focused:       {format_duration(cache.focused_time_for_window(anchor))}")
        print(f"Maintenance:   {format_duration(cache.maintenance_time_for_window(anchor))}")
        print(f"Idle time:     {format_duration(idle)}")
        print(f"Tracked days:  {tracked}/{len(days)}")
        if tracked:
            print(f"Avg active:    {format_duration(active / tracked)}")
        print()

        for day in reversed(days):
            print(f"  {day.isoformat()}  {format_duration(cache.active_time_for_day(day))}")

    def print_segments(self, day: DayLike) -> None:
        ledger = self.session.ledger
        segments = ledger.segments_for_day(day)
        if not segments:
            print("No segments recorded for the selected day.")
            return
        now = self.session.now
        for segment in segments:
            end = segment.end.strftime("%H:%M") if segment.end else "now"
            tag = ledger.tag_for_segment(segment)
            line = (
                f"  {segment.start.strftime('%H:%M')}-{end:<5} {tag.name:<20} "
                f"{format_duration(segment.duration_seconds(now))}  {segment.id}"
            )
            if segment.note:
                line += f"  ({segment.note})"
            print(line)


def rank_tags(session: LedgerSession, totals: dict[str, float]) -> list[tuple[str, float]]:
    names = {tag.id: tag.name for tag in session.ledger.tags}
    ranked = [
        (names.get(tag_id, tag_id), seconds) for tag_id, seconds in totals.items() if seconds > 0
    ]
    return sorted(ranked, key=lambda item: item[1], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_short_duration(seconds: float) -> str:
    """Compact form used in status lines: ``<1m``, ``45m``, ``2h 5m``."""
    if seconds < 60:
        return "<1m"
    total_minutes = int(seconds // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_day(value: str | None, default: date) -> date:
    if not value:
        return default
    return date.fromisoformat(value)
