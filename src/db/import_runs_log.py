# src/db/import_runs_log.py
"""
One row per imported crawl run in public.apify_runs_log.

A run id present here is skipped by the "latest" and "by date" import
actions; an explicit run id list is always processed. Failed imports are
not logged, so the next invocation retries them.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence, Set

from supabase import Client

from .supabase_client import execute_with_retry

TABLE = "apify_runs_log"

_COUNTER_COLUMNS = (
    "events_fetched",
    "new_events",
    "updated_events",
    "filtered_events",
    "geocoding_calls",
    "cache_hits",
    "geocode_failed",
    "promoted_events",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def find_processed_runs(supabase: Client, run_ids: Sequence[str]) -> Set[str]:
    if not run_ids:
        return set()
    resp = execute_with_retry(
        supabase.table(TABLE).select("run_id").in_("run_id", list(run_ids))
    )
    return {str(r["run_id"]) for r in resp.data or [] if r.get("run_id")}


def build_log_row(run_id: str, result: Mapping[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {
        "run_id": run_id,
        "processed_at": _utc_now().isoformat(),
    }
    for col in _COUNTER_COLUMNS:
        row[col] = int(result.get(col) or 0)
    return row


def log_processed_run(supabase: Client, run_id: str, result: Mapping[str, Any]) -> None:
    """Upsert so a forced re-import of the same run refreshes its counters."""
    execute_with_retry(
        supabase.table(TABLE).upsert(build_log_row(run_id, result), on_conflict="run_id")
    )
