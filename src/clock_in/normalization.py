"""Utilities to normalize tag names."""

from __future__ import annotations

import re
from typing import Optional

FALLBACK_TAG_NAME = "Untitled"

_WHITESPACE_RUN = re.compile(r"\s{2,}")


def normalize_tag_name(name: Optional[str]) -> Optional[str]:
    """Trim and collapse whitespace; return ``None`` for blank names."""
    if not name:
        return None
    normalized = _WHITESPACE_RUN.sub(" ", name.strip())
    return normalized or None


def resolve_tag_name(name: Optional[str]) -> str:
    return normalize_tag_name(name) or FALLBACK_TAG_NAME


def tag_key(name: str) -> str:
    """Key used for case-insensitive tag name comparison."""
    return name.casefold()
