#!/usr/bin/env python3
# scripts/db_smoke_verify.py
"""
Read-only DB smoke verification for the import tables.

Connects to Supabase and verifies:
  1. events (capture table) has the columns the import writes.
  2. general_events has source_event_id and the canonical columns.
  3. geocode_cache is selectable with its status column.
  4. apify_runs_log is selectable with its counter columns.

Prints a PASS/FAIL summary per check. Exits non-zero on any failure.

Usage:
    python -m scripts.db_smoke_verify
"""
from __future__ import annotations

from typing import Any, Callable, Sequence

CAPTURE_COLUMNS = (
    "id", "ticketmaster_id", "name", "local_date", "venue_name",
    "street_address", "address_locality", "postal_code", "address_country",
    "offer", "price_ranges", "performers", "run_id", "raw_event_data", "updated_at",
)
CANONICAL_COLUMNS = (
    "event_id", "source_event_id", "ticketmaster_id", "title", "location",
    "location_name", "event_start_date", "event_start_time", "auto_import",
)
CACHE_COLUMNS = ("query", "status", "lat", "lng", "place_name")
RUNS_LOG_COLUMNS = ("run_id", "processed_at", "new_events", "promoted_events")


def _check_columns(supabase: Any, table: str, columns: Sequence[str]) -> tuple[bool, str]:
    """
    SELECT the given columns with limit 1. A successful (possibly empty)
    response means the table and columns exist; PostgREST answers 400 for
    an unknown column, which supabase-py raises.
    """
    try:
        resp = supabase.table(table).select(",".join(columns)).limit(1).execute()
        _ = resp.data
        return True, f"All {len(columns)} columns selectable"
    except Exception as exc:
        return False, f"Column select failed: {exc}"


def check_capture_table(supabase: Any) -> tuple[bool, str]:
    return _check_columns(supabase, "events", CAPTURE_COLUMNS)


def check_canonical_table(supabase: Any) -> tuple[bool, str]:
    return _check_columns(supabase, "general_events", CANONICAL_COLUMNS)


def check_geocode_cache(supabase: Any) -> tuple[bool, str]:
    return _check_columns(supabase, "geocode_cache", CACHE_COLUMNS)


def check_runs_log(supabase: Any) -> tuple[bool, str]:
    return _check_columns(supabase, "apify_runs_log", RUNS_LOG_COLUMNS)


CHECKS: list[tuple[str, Callable[[Any], tuple[bool, str]]]] = [
    ("events columns", check_capture_table),
    ("general_events columns", check_canonical_table),
    ("geocode_cache columns", check_geocode_cache),
    ("apify_runs_log columns", check_runs_log),
]


def run_smoke_checks(supabase: Any) -> list[tuple[str, bool, str]]:
    """Run all checks and return list of (name, passed, detail)."""
    results: list[tuple[str, bool, str]] = []
    for name, fn in CHECKS:
        passed, detail = fn(supabase)
        results.append((name, passed, detail))
    return results


def print_results(results: list[tuple[str, bool, str]]) -> int:
    """Print results and return exit code (0 = all pass, 1 = failures)."""
    print("\n=== DB Smoke Verification ===\n")
    all_pass = True
    for name, passed, detail in results:
        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False
        print(f"  [{status}] {name}: {detail}")
    print()
    if all_pass:
        print("All checks passed.")
    else:
        print("Some checks FAILED. See above.")
    return 0 if all_pass else 1


def main() -> int:
    from src.db.supabase_client import get_supabase_client

    supabase = get_supabase_client()
    results = run_smoke_checks(supabase)
    return print_results(results)


if __name__ == "__main__":
    raise SystemExit(main())
