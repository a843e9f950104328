"""
Location query derivation for captured rows.

Geocode and Promote both call build_location_query() on the same captured
row, so both phases always land on the same cache key.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

ADDRESS_FIELDS = (
    "street_address",
    "address_locality",
    "postal_code",
    "address_region",
    "address_country",
)

VENUE_DELIMITER = "|"


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def extract_venue_name(record: Mapping[str, Any]) -> Optional[str]:
    """
    Best-effort venue name for a captured row.

    1. text after the last "|" in the description
       (listing descriptions read "<event> | <venue>")
    2. venue_name
    3. address_locality
    """
    description = _clean(record.get("description"))
    if VENUE_DELIMITER in description:
        tail = description.rsplit(VENUE_DELIMITER, 1)[1].strip()
        if tail:
            return tail
    return _clean(record.get("venue_name")) or _clean(record.get("address_locality")) or None


def build_location_query(record: Mapping[str, Any]) -> Optional[str]:
    parts = [_clean(record.get(f)) for f in ADDRESS_FIELDS]
    query = ", ".join(p for p in parts if p)
    if query:
        return query
    return extract_venue_name(record)


def normalize_query(query: str) -> str:
    """Cache key for a location query."""
    return " ".join(query.lower().split())


def simplify_query(query: str) -> Optional[str]:
    """Text before the first comma, or None when there is nothing to simplify."""
    if "," not in query:
        return None
    head = query.split(",", 1)[0].strip()
    return head or None


def location_name(record: Mapping[str, Any]) -> Optional[str]:
    """Display name for the canonical row: venue, locality, country."""
    parts = [
        _clean(record.get("venue_name")),
        _clean(record.get("address_locality")),
        _clean(record.get("address_country")),
    ]
    joined = ", ".join(p for p in parts if p)
    return joined or None
