from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from postgrest.exceptions import APIError
from supabase import Client

from .db import import_runs_log
from .db.supabase_client import execute_with_retry, get_supabase_client
from .models import CapturedEvent, GeocodeCacheEntry

logger = logging.getLogger(__name__)

CAPTURE_TABLE = "events"
CANONICAL_TABLE = "general_events"
GEOCODE_CACHE_TABLE = "geocode_cache"

# PostgREST caps a single select at 1000 rows by default; `in.(...)` filters
# travel in the URL, so id lists are chunked well below URL limits.
PAGE_SIZE = 1000
ID_CHUNK = 200


def _chunks(seq: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i:i + size]


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _bool_or_none(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _list_of_dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [dict(v) for v in value if isinstance(v, Mapping)]


# -----------------------------------------------------------------------------
# Row builders (pure)
# -----------------------------------------------------------------------------

def build_captured_row(
    item: Mapping[str, Any],
    *,
    identity: str,
    run_id: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Build a dict suitable for upserting into public.events.

    Pure function (no DB calls). Every column is written on every capture so
    a repeated run refreshes pricing, performers, offer and raw payload.
    """
    now = now or datetime.now(timezone.utc)
    offer = item.get("offer")
    ev = CapturedEvent(
        id=identity,
        ticketmaster_id=_str_or_none(item.get("id")),
        name=str(item.get("name") or "").strip(),
        url=_str_or_none(item.get("url")),
        description=_str_or_none(item.get("description")),
        image=_str_or_none(item.get("image")),
        segment_name=_str_or_none(item.get("segmentName")),
        genre_name=_str_or_none(item.get("genreName")),
        date_title=_str_or_none(item.get("dateTitle")),
        date_sub_title=_str_or_none(item.get("dateSubTitle")),
        local_date=_str_or_none(item.get("localDate")),
        date_tba=_bool_or_none(item.get("dateTBA")),
        time_tba=_bool_or_none(item.get("timeTBA")),
        venue_name=_str_or_none(item.get("venueName")),
        street_address=_str_or_none(item.get("streetAddress")),
        address_locality=_str_or_none(item.get("addressLocality")),
        address_region=_str_or_none(item.get("addressRegion")),
        postal_code=_str_or_none(item.get("postalCode")),
        address_country=_str_or_none(item.get("addressCountry")),
        place_url=_str_or_none(item.get("placeUrl")),
        offer=dict(offer) if isinstance(offer, Mapping) else None,
        price_ranges=_list_of_dicts(item.get("priceRanges")),
        performers=_list_of_dicts(item.get("performers")),
        run_id=run_id,
        raw_event_data=dict(item),
        updated_at=now,
    )
    return ev.model_dump(mode="json")


# -----------------------------------------------------------------------------
# Supabase-backed EventStore
# -----------------------------------------------------------------------------

class SupabaseEventStore:
    """EventStore over public.events / general_events / geocode_cache / apify_runs_log."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self.supabase = supabase or get_supabase_client()

    # ---- capture -------------------------------------------------------------

    def _existing_ids(self, table: str, column: str, ids: Sequence[str]) -> Set[str]:
        found: Set[str] = set()
        for chunk in _chunks(list(ids), ID_CHUNK):
            resp = execute_with_retry(
                self.supabase.table(table).select(column).in_(column, list(chunk))
            )
            for row in resp.data or []:
                if row.get(column):
                    found.add(str(row[column]))
        return found

    def upsert_captured_many(self, rows: Sequence[Mapping[str, Any]]) -> Set[str]:
        if not rows:
            return set()
        ids = [str(r["id"]) for r in rows]
        existing = self._existing_ids(CAPTURE_TABLE, "id", ids)

        for chunk in _chunks(list(rows), ID_CHUNK):
            try:
                execute_with_retry(
                    self.supabase.table(CAPTURE_TABLE).upsert(list(chunk), on_conflict="id")
                )
            except APIError as e:
                logger.error("[storage] capture upsert failed: %s", e.message)
                raise RuntimeError(f"Capture upsert failed: {e.message}") from e

        return {i for i in ids if i not in existing}

    def fetch_captured_for_run(self, run_id: str) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        start = 0
        while True:
            resp = execute_with_retry(
                self.supabase.table(CAPTURE_TABLE)
                .select("*")
                .eq("run_id", run_id)
                .order("id")
                .range(start, start + PAGE_SIZE - 1)
            )
            rows = resp.data or []
            out.extend(rows)
            if len(rows) < PAGE_SIZE:
                return out
            start += PAGE_SIZE

    # ---- promotion -----------------------------------------------------------

    def find_promoted_identities(self, ids: Iterable[str]) -> Set[str]:
        return self._existing_ids(CANONICAL_TABLE, "source_event_id", list(dict.fromkeys(ids)))

    def insert_canonical(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """
        Insert canonical rows; a source_event_id that already exists is left
        untouched (ON CONFLICT DO NOTHING), so a concurrent import cannot
        produce a second canonical row for the same identity.
        """
        inserted = 0
        for chunk in _chunks(list(rows), ID_CHUNK):
            try:
                resp = execute_with_retry(
                    self.supabase.table(CANONICAL_TABLE).upsert(
                        list(chunk),
                        on_conflict="source_event_id",
                        ignore_duplicates=True,
                    )
                )
            except APIError as e:
                logger.error("[storage] canonical insert failed: %s", e.message)
                raise RuntimeError(f"Canonical insert failed: {e.message}") from e
            inserted += len(resp.data) if resp.data is not None else len(chunk)
        return inserted

    # ---- geocode cache -------------------------------------------------------

    def get_cache_entry(self, query: str) -> Optional[GeocodeCacheEntry]:
        resp = execute_with_retry(
            self.supabase.table(GEOCODE_CACHE_TABLE).select("*").eq("query", query).limit(1)
        )
        rows = resp.data or []
        if not rows:
            return None
        return GeocodeCacheEntry.model_validate(rows[0])

    def put_cache_entry(self, entry: GeocodeCacheEntry) -> None:
        """First writer wins: an existing entry for the same query is never overwritten."""
        row = entry.model_dump(mode="json", exclude_none=True)
        try:
            execute_with_retry(
                self.supabase.table(GEOCODE_CACHE_TABLE).upsert(
                    row, on_conflict="query", ignore_duplicates=True
                )
            )
        except APIError as e:
            logger.error("[storage] geocode cache write failed for %r: %s", entry.query, e.message)
            raise RuntimeError(f"Geocode cache write failed: {e.message}") from e

    # ---- processed runs ------------------------------------------------------

    def find_processed_runs(self, run_ids: Iterable[str]) -> Set[str]:
        return import_runs_log.find_processed_runs(self.supabase, list(run_ids))

    def log_processed_run(self, run_id: str, result: Mapping[str, Any]) -> None:
        import_runs_log.log_processed_run(self.supabase, run_id, result)
