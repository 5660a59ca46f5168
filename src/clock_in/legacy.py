"""Decoding of the one-time legacy segment export."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, TypeAdapter, field_validator

logger = logging.getLogger(__name__)


class LegacySegment(BaseModel):
    """A segment as written by the pre-database format."""

    id: UUID
    tag: str
    start: datetime
    end: Optional[datetime] = None
    note: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("start", "end")
    @classmethod
    def _to_local_naive(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone().replace(tzinfo=None)


_LEGACY_LIST = TypeAdapter(list[LegacySegment])


def decode_legacy_payload(payload: bytes | str) -> list[LegacySegment]:
    """Parse a JSON array of legacy segments.

    Raises ``pydantic.ValidationError`` when the payload cannot be decoded.
    """
    return _LEGACY_LIST.validate_json(payload)


def read_legacy_export(path: Path) -> Optional[bytes]:
    """Return the raw export at ``path``, or ``None`` when there is none."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError:
        logger.warning("Could not read legacy export at %s.", path, exc_info=True)
        return None
