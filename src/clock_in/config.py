"""Configuration models and helpers for the activity ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(slots=True)
class LedgerSettings:
    """Runtime configuration for the ledger engine and its aggregates."""

    merge_gap: timedelta = timedelta(seconds=60)
    noise_threshold: timedelta = timedelta(seconds=60)
    tracked_day_threshold: timedelta = timedelta(minutes=30)
    save_delay: timedelta = timedelta(seconds=0.6)
    active_tick: timedelta = timedelta(seconds=5)
    inactive_tick: timedelta = timedelta(seconds=60)
    activation_throttle: timedelta = timedelta(minutes=2)
    window_length: int = 7

    @classmethod
    def from_intervals(
        cls,
        active_tick_seconds: float,
        inactive_tick_seconds: float | None = None,
        save_delay_seconds: float | None = None,
    ) -> "LedgerSettings":
        inactive = (
            inactive_tick_seconds
            if inactive_tick_seconds is not None
            else max(active_tick_seconds * 12, 60.0)
        )
        save_delay = save_delay_seconds if save_delay_seconds is not None else 0.6
        return cls(
            active_tick=timedelta(seconds=active_tick_seconds),
            inactive_tick=timedelta(seconds=inactive),
            save_delay=timedelta(seconds=save_delay),
        )


class TagDefaults:
    idle_name = "Idle / Off"
    names: tuple[str, ...] = (
        "School",
        "Work",
        "Training",
        "Food",
        "Personal Care",
        "Recovery / Mind",
        "Social / Admin",
        idle_name,
    )


@dataclass(slots=True)
class CategoryTable:
    """Maps tag names onto the focused and maintenance groups."""

    focused: frozenset[str] = field(
        default_factory=lambda: frozenset({"Work", "School", "Training"})
    )
    maintenance: frozenset[str] = field(
        default_factory=lambda: frozenset(
            {"Food", "Personal Care", "Recovery / Mind", "Social / Admin"}
        )
    )
