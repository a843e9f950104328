# src/ingest/filters.py
"""
Capture gate: which scraped items are never landed.

Rules are deterministic:
  1. Empty or whitespace-only name                                -> "no_name"
  2. Explicit TBA marker: dateTBA is true, or the word "TBA"
     (case-insensitive) in name / dateTitle / date / localDate     -> "tba"
  3. "invalid date" (case-insensitive) in dateTitle / date         -> "invalid_date"

Anything else passes (reason None).
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional

_TBA_RE = re.compile(r"\btba\b", re.IGNORECASE)
_INVALID_DATE = "invalid date"

_TBA_FIELDS = ("name", "dateTitle", "date", "localDate")
_INVALID_DATE_FIELDS = ("dateTitle", "date")


def _text(item: Mapping[str, Any], key: str) -> str:
    value = item.get(key)
    return value if isinstance(value, str) else ""


def rejection_reason(item: Mapping[str, Any]) -> Optional[str]:
    """Return why *item* must be dropped before capture, or None to keep it."""
    if not _text(item, "name").strip():
        return "no_name"
    if item.get("dateTBA") is True:
        return "tba"
    for key in _TBA_FIELDS:
        if _TBA_RE.search(_text(item, key)):
            return "tba"
    for key in _INVALID_DATE_FIELDS:
        if _INVALID_DATE in _text(item, key).lower():
            return "invalid_date"
    return None


def is_importable(item: Mapping[str, Any]) -> bool:
    return rejection_reason(item) is None
