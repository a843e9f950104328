"""
Phase 2: resolve every distinct location of a run through the geocode cache.

One external lookup per distinct normalized query at most, and none for a
query that is already cached, including cached failures. A failure for one
location never stops the phase.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from ..models import GeocodeCacheEntry
from .geocoder import MapboxGeocoder
from .location import build_location_query, normalize_query
from .store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class GeocodeStats:
    unique_queries: int = 0
    cache_hits: int = 0
    geocoded: int = 0
    failed: int = 0
    skipped: int = 0            # no geocoder configured; left uncached
    external_calls: int = 0
    records_without_query: int = 0
    cache_write_errors: int = 0


def group_queries(records: Sequence[Mapping[str, Any]]) -> Dict[str, str]:
    """normalized query -> first raw query seen for it."""
    out: Dict[str, str] = {}
    for rec in records:
        query = build_location_query(rec)
        if not query:
            continue
        out.setdefault(normalize_query(query), query)
    return out


def geocode_locations(
    records: Sequence[Mapping[str, Any]],
    store: EventStore,
    geocoder: Optional[MapboxGeocoder],
) -> GeocodeStats:
    stats = GeocodeStats()
    queries = group_queries(records)
    stats.unique_queries = len(queries)
    stats.records_without_query = sum(1 for r in records if not build_location_query(r))
    calls_before = geocoder.external_calls if geocoder else 0

    for key, query in queries.items():
        if store.get_cache_entry(key) is not None:
            stats.cache_hits += 1
            continue

        if geocoder is None:
            stats.skipped += 1
            continue

        result = geocoder.geocode(query)
        entry = GeocodeCacheEntry(
            query=key,
            status="ok" if result.ok else "failed",
            lat=result.lat,
            lng=result.lng,
            place_name=result.place_name,
            created_at=datetime.now(timezone.utc),
        )
        if result.ok:
            stats.geocoded += 1
        else:
            stats.failed += 1
            logger.warning("[geocode] no coordinates for %r, caching failure", query)

        try:
            store.put_cache_entry(entry)
        except Exception as e:
            stats.cache_write_errors += 1
            logger.error("[geocode] cache write FAILED for %r: %s: %s", key, type(e).__name__, e)

    if geocoder is not None:
        stats.external_calls = geocoder.external_calls - calls_before
    elif stats.skipped:
        logger.warning(
            "[geocode] MAPBOX_ACCESS_TOKEN not set, %s uncached locations left unresolved",
            stats.skipped,
        )

    logger.info(
        "[geocode] unique=%s cache_hits=%s geocoded=%s failed=%s external_calls=%s",
        stats.unique_queries, stats.cache_hits, stats.geocoded, stats.failed, stats.external_calls,
    )
    return stats
