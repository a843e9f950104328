# src/jobs/import_runs.py
"""
Import job: run the three-phase import over a batch of crawl runs.

=== Actions ===

  latest    runs from the most recent day with SUCCEEDED runs (among the
            last --limit runs), minus runs already in apify_runs_log
  date      SUCCEEDED runs started on --date (YYYY-MM-DD), minus already
            processed runs unless --include-processed
  specific  exactly the given --run-id values, processed or not
  list      print the last --limit runs with their processed flag

=== Batch semantics ===

  - Runs are imported one after another.
  - A wall-clock budget (IMPORT_TIME_BUDGET_SECONDS, default 120s) is
    checked before each run; once it is spent, the remaining runs are
    deferred to the next invocation and reported.
  - A failing run is recorded with its error and the batch continues.
    Only successful runs are written to apify_runs_log.
"""
from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import Settings
from ..crawl.run_storage import STATUS_SUCCEEDED, LocalRunStorage
from ..ingest.geocoder import MapboxGeocoder
from ..ingest.pipeline import ImportPipeline, ImportResult
from ..ingest.runs import ApifyRunRepository, RunRepository
from ..ingest.store import EventStore
from ..logging_utils import configure_logging
from ..models import RunInfo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class BatchResult:
    results: List[ImportResult] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    skipped_processed: List[str] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def succeeded(self) -> List[ImportResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[ImportResult]:
        return [r for r in self.results if not r.ok]

    def totals(self) -> Dict[str, int]:
        keys = (
            "events_fetched", "new_events", "updated_events", "filtered_events",
            "geocoding_calls", "cache_hits", "geocode_failed", "promoted_events",
        )
        return {k: sum(getattr(r, k) for r in self.succeeded) for k in keys}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "deferred": list(self.deferred),
            "skipped_processed": list(self.skipped_processed),
            "elapsed_s": round(self.elapsed_s, 3),
            "totals": self.totals(),
        }


# ---------------------------------------------------------------------------
# Batch driver
# ---------------------------------------------------------------------------

def process_runs(
    run_ids: Sequence[str],
    pipeline: ImportPipeline,
    store: EventStore,
    *,
    budget_s: float = 120.0,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    batch = BatchResult()
    started = clock()

    for i, run_id in enumerate(run_ids):
        elapsed = clock() - started
        if elapsed >= budget_s:
            batch.deferred = list(run_ids[i:])
            logger.warning(
                "[import] time budget spent (%.1fs >= %.1fs), deferring %s runs",
                elapsed, budget_s, len(batch.deferred),
            )
            break

        try:
            result = pipeline.import_run(run_id)
        except Exception as e:
            print(f"[import] RUN_FAILED run_id={run_id} | {type(e).__name__}: {e}")
            batch.results.append(ImportResult(run_id=run_id, error=f"{type(e).__name__}: {e}"))
            continue

        try:
            store.log_processed_run(run_id, result.to_dict())
        except Exception as e:
            print(f"[import] RUN_LOG_FAILED run_id={run_id} | {type(e).__name__}: {e}")
            result.error = f"log_processed_run: {type(e).__name__}: {e}"

        batch.results.append(result)

    batch.elapsed_s = clock() - started
    return batch


def _succeeded(runs: Sequence[RunInfo]) -> List[RunInfo]:
    return [r for r in runs if r.status == STATUS_SUCCEEDED]


def _without_processed(
    runs: Sequence[RunInfo], store: EventStore, batch_skipped: List[str]
) -> List[str]:
    ids = [r.id for r in runs]
    processed = store.find_processed_runs(ids)
    batch_skipped.extend(i for i in ids if i in processed)
    return [i for i in ids if i not in processed]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def import_latest_runs(
    runs: RunRepository,
    pipeline: ImportPipeline,
    store: EventStore,
    *,
    limit: int = 20,
    budget_s: float = 120.0,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    candidates = _succeeded(runs.list_runs(limit))
    if not candidates:
        logger.info("[import] no SUCCEEDED runs found")
        return BatchResult()

    latest_day = max(r.started_date for r in candidates)
    todays = [r for r in candidates if r.started_date == latest_day]
    logger.info("[import] latest day=%s runs=%s", latest_day, len(todays))

    skipped: List[str] = []
    run_ids = _without_processed(todays, store, skipped)
    batch = process_runs(run_ids, pipeline, store, budget_s=budget_s, clock=clock)
    batch.skipped_processed = skipped
    return batch


def import_runs_for_date(
    day: str,
    runs: RunRepository,
    pipeline: ImportPipeline,
    store: EventStore,
    *,
    limit: int = 100,
    include_processed: bool = False,
    budget_s: float = 120.0,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    try:
        day = date.fromisoformat(day).isoformat()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date {day!r}, expected YYYY-MM-DD") from None

    matching = [r for r in _succeeded(runs.list_runs(limit)) if r.started_date == day]
    logger.info("[import] date=%s runs=%s", day, len(matching))

    skipped: List[str] = []
    if include_processed:
        run_ids = [r.id for r in matching]
    else:
        run_ids = _without_processed(matching, store, skipped)
    batch = process_runs(run_ids, pipeline, store, budget_s=budget_s, clock=clock)
    batch.skipped_processed = skipped
    return batch


def import_specific_runs(
    run_ids: Sequence[str],
    pipeline: ImportPipeline,
    store: EventStore,
    *,
    budget_s: float = 120.0,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    ids = [r.strip() for r in run_ids or [] if r and r.strip()]
    if not ids:
        raise ValueError("At least one run id is required")
    return process_runs(list(dict.fromkeys(ids)), pipeline, store, budget_s=budget_s, clock=clock)


def list_runs(runs: RunRepository, store: EventStore, *, limit: int = 20) -> List[Dict[str, Any]]:
    infos = runs.list_runs(limit)
    processed = store.find_processed_runs([r.id for r in infos])
    return [
        {**r.model_dump(by_alias=True), "processed": r.id in processed}
        for r in infos
    ]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_run_repository(source: str, settings: Settings) -> RunRepository:
    if source == "apify":
        settings.require("apify_token", "ticketmaster_actor_id")
        return ApifyRunRepository(
            settings.apify_token,
            settings.ticketmaster_actor_id,
            timeout_s=settings.request_timeout_s,
        )
    return LocalRunStorage(settings.runs_dir)


def build_geocoder(settings: Settings) -> Optional[MapboxGeocoder]:
    if not settings.mapbox_access_token:
        logger.warning("[import] MAPBOX_ACCESS_TOKEN not found, skipping geocoding")
        return None
    return MapboxGeocoder(
        settings.mapbox_access_token,
        timeout_s=settings.request_timeout_s,
        max_attempts=settings.geocoding_max_attempts,
        backoff_s=settings.geocoding_backoff_s,
        min_delay_s=settings.geocoding_min_delay_s,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import crawl runs into Supabase")
    parser.add_argument(
        "--action",
        choices=["latest", "date", "specific", "list"],
        default="latest",
    )
    parser.add_argument("--run-id", action="append", default=[], help="Run id (repeatable, action=specific)")
    parser.add_argument("--date", help="YYYY-MM-DD (action=date)")
    parser.add_argument("--include-processed", action="store_true", help="action=date: re-import logged runs")
    parser.add_argument("--limit", type=int, default=20, help="How many recent runs to consider")
    parser.add_argument("--source", choices=["local", "apify"], default="local")
    parser.add_argument("--budget", type=float, default=None, help="Wall-clock budget in seconds")
    args = parser.parse_args(argv)

    configure_logging()
    settings = Settings.from_env()

    # Imported lazily so `--help` works without Supabase credentials.
    from ..storage import SupabaseEventStore

    store = SupabaseEventStore()
    runs = build_run_repository(args.source, settings)

    if args.action == "list":
        print(json.dumps(list_runs(runs, store, limit=args.limit), indent=2))
        return 0

    pipeline = ImportPipeline(store, runs, build_geocoder(settings))
    budget_s = args.budget if args.budget is not None else settings.import_time_budget_s

    if args.action == "specific":
        batch = import_specific_runs(args.run_id, pipeline, store, budget_s=budget_s)
    elif args.action == "date":
        if not args.date:
            parser.error("--date is required for action=date")
        batch = import_runs_for_date(
            args.date, runs, pipeline, store,
            limit=max(args.limit, 100),
            include_processed=args.include_processed,
            budget_s=budget_s,
        )
    else:
        batch = import_latest_runs(runs, pipeline, store, limit=args.limit, budget_s=budget_s)

    totals = batch.totals()
    # ---------------------------------------------------------------
    # Deterministic, grep-friendly summary line.
    # grep '[import][summary]' /tmp/import.log
    # ---------------------------------------------------------------
    print(
        f"[import][summary]"
        f" action={args.action}"
        f" runs_processed={len(batch.succeeded)}"
        f" runs_failed={len(batch.failed)}"
        f" runs_deferred={len(batch.deferred)}"
        f" runs_skipped={len(batch.skipped_processed)}"
        f" new={totals['new_events']}"
        f" updated={totals['updated_events']}"
        f" filtered={totals['filtered_events']}"
        f" geocoding_calls={totals['geocoding_calls']}"
        f" promoted={totals['promoted_events']}"
        f" elapsed_s={batch.elapsed_s:.1f}"
    )
    if batch.deferred:
        print(f"[import] deferred run ids: {', '.join(batch.deferred)}")
    return 1 if batch.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
