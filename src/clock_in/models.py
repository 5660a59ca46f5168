"""Domain models for the activity ledger."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class Tag:
    """A named activity category; exactly one tag is the system idle tag."""

    name: str
    order: int
    is_hidden: bool = False
    is_system: bool = False
    id: str = field(default_factory=new_id)


@dataclass(slots=True)
class Segment:
    """A time interval assigned to one tag. An absent end marks the active segment."""

    tag_id: Optional[str]
    tag_name: str
    start: datetime
    end: Optional[datetime] = None
    note: Optional[str] = None
    id: str = field(default_factory=new_id)

    @property
    def is_active(self) -> bool:
        return self.end is None

    def effective_end(self, now: datetime) -> datetime:
        return self.end if self.end is not None else now

    def duration_seconds(self, now: datetime) -> float:
        return max(0.0, (self.effective_end(now) - self.start).total_seconds())


@dataclass(frozen=True, slots=True)
class UndoToken:
    """Everything needed to reverse exactly one tag switch."""

    removed_segment_id: str
    restored_segment_id: str
    restored_previous_end: Optional[datetime] = None
