"""Exceptions raised by the ledger engine."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures."""


class SegmentEditError(LedgerError, ValueError):
    """A segment edit was rejected before anything was changed."""

    message = "Segment edit rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidRangeError(SegmentEditError):
    message = "Start must be before end."


class OverlapError(SegmentEditError):
    message = "Segment overlaps another segment."


class InvalidSplitError(SegmentEditError):
    message = "Split time must be inside the segment."


class SegmentNotFoundError(LedgerError, LookupError):
    def __init__(self, segment_id: str) -> None:
        super().__init__(f"No segment found for id={segment_id}")
        self.segment_id = segment_id


class TagEditError(LedgerError, ValueError):
    """A tag could not be created, renamed or hidden."""


class TagNotFoundError(LedgerError, LookupError):
    def __init__(self, tag_id: str) -> None:
        super().__init__(f"No tag found for id={tag_id}")
        self.tag_id = tag_id
