"""
Phase 3: promote captured rows into public.general_events.

At-most-once per capture identity: a row whose id already appears as a
canonical source_event_id is skipped, even if its captured fields changed
since. Coordinates come from the geocode cache only.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from ..models import CanonicalEvent, GeocodeCacheEntry
from .geocoder import to_point
from .location import build_location_query, location_name, normalize_query
from .store import EventStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Event"
DEFAULT_START_TIME = "19:00:00"
DEFAULT_END_TIME = "23:00:00"
DESCRIPTION_HEADER = "Event imported from Ticketmaster"

_TIME_RE = re.compile(r"T(\d{2}):(\d{2})(?::(\d{2}))?")


@dataclass
class PromoteResult:
    candidates: int = 0
    promoted: int = 0
    skipped_existing: int = 0
    without_location: int = 0


def parse_event_date(local_date: Optional[str]) -> Optional[str]:
    """Calendar date (YYYY-MM-DD) of a localDate value, or None."""
    if not local_date:
        return None
    try:
        return date.fromisoformat(str(local_date)[:10]).isoformat()
    except ValueError:
        return None


def parse_event_time(local_date: Optional[str]) -> Optional[str]:
    """HH:MM:SS from the time part of a localDate value, or None."""
    m = _TIME_RE.search(str(local_date or ""))
    if not m:
        return None
    return f"{m.group(1)}:{m.group(2)}:{m.group(3) or '00'}"


def build_description(record: Mapping[str, Any]) -> str:
    lines = [DESCRIPTION_HEADER]

    category = " / ".join(
        v for v in (record.get("segment_name"), record.get("genre_name")) if v
    )
    if category:
        lines.append(f"Category: {category}")

    artists = [p.get("name") for p in record.get("performers") or [] if isinstance(p, Mapping) and p.get("name")]
    if artists:
        lines.append(f"Artists: {', '.join(artists)}")

    if record.get("url"):
        lines.append(f"Tickets: {record['url']}")

    return "\n\n".join(lines)


def build_canonical_row(
    record: Mapping[str, Any],
    cache_entry: Optional[GeocodeCacheEntry],
    *,
    event_id: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Pure: captured row (+ cache entry) -> general_events row."""
    now = now or datetime.now(timezone.utc)
    local_date = record.get("local_date")
    start_date = parse_event_date(local_date)

    location = None
    if cache_entry is not None and not cache_entry.is_failed:
        location = to_point(cache_entry.lng, cache_entry.lat)

    ev = CanonicalEvent(
        event_id=event_id,
        source_event_id=str(record["id"]),
        ticketmaster_id=record.get("ticketmaster_id"),
        title=(record.get("name") or "").strip() or DEFAULT_TITLE,
        description=build_description(record),
        website_url=record.get("url"),
        location=location,
        location_name=location_name(record),
        event_start_date=start_date,
        event_end_date=start_date,
        event_start_time=parse_event_time(local_date) or DEFAULT_START_TIME,
        event_end_time=DEFAULT_END_TIME,
        banner_url=record.get("image"),
        auto_import=True,
        created_at=now,
        raw_event_data=dict(record.get("raw_event_data") or {}),
    )
    return ev.model_dump(mode="json")


def promote_events(
    records: Sequence[Mapping[str, Any]],
    store: EventStore,
    *,
    now: Optional[datetime] = None,
    id_factory: Callable[[], str] = lambda: str(uuid4()),
) -> PromoteResult:
    result = PromoteResult()

    by_id: Dict[str, Mapping[str, Any]] = {}
    for rec in records:
        by_id[str(rec["id"])] = rec
    result.candidates = len(by_id)
    if not by_id:
        return result

    already = store.find_promoted_identities(list(by_id))
    result.skipped_existing = len(already)

    cache: Dict[str, Optional[GeocodeCacheEntry]] = {}
    rows: List[dict[str, Any]] = []
    for identity, rec in by_id.items():
        if identity in already:
            continue

        entry = None
        query = build_location_query(rec)
        if query:
            key = normalize_query(query)
            if key not in cache:
                cache[key] = store.get_cache_entry(key)
            entry = cache[key]
        if entry is None or entry.is_failed:
            result.without_location += 1

        rows.append(build_canonical_row(rec, entry, event_id=id_factory(), now=now))

    if rows:
        result.promoted = store.insert_canonical(rows)

    logger.info(
        "[promote] candidates=%s promoted=%s skipped_existing=%s without_location=%s",
        result.candidates, result.promoted, result.skipped_existing, result.without_location,
    )
    return result
