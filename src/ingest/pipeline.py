"""
Three-phase import of one completed crawl run:

  1. Capture   scraped items -> public.events (upsert by identity)
  2. Geocode   distinct locations -> public.geocode_cache
  3. Promote   not-yet-promoted captured rows -> public.general_events

Every phase is idempotent, so importing the same run twice (or two runs
that overlap) converges to the same end state.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .capture import capture_events
from .geocode_phase import geocode_locations
from .geocoder import MapboxGeocoder
from .promote import promote_events
from .runs import RunRepository
from .store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    run_id: str
    events_fetched: int = 0
    new_events: int = 0
    updated_events: int = 0
    filtered_events: int = 0
    duplicate_events: int = 0
    unique_locations: int = 0
    cache_hits: int = 0
    geocoded: int = 0
    geocode_failed: int = 0
    geocoding_calls: int = 0
    promoted_events: int = 0
    already_promoted: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ImportPipeline:
    def __init__(
        self,
        store: EventStore,
        runs: RunRepository,
        geocoder: Optional[MapboxGeocoder] = None,
        *,
        now: Optional[datetime] = None,
    ) -> None:
        self.store = store
        self.runs = runs
        self.geocoder = geocoder
        self.now = now

    def import_run(self, run_id: str) -> ImportResult:
        """Run all three phases for *run_id*. Errors propagate to the caller."""
        if not run_id:
            raise ValueError("run_id is required")

        result = ImportResult(run_id=run_id)
        items = self.runs.fetch_items(run_id)
        result.events_fetched = len(items)
        logger.info("[import] run=%s fetched=%s", run_id, len(items))
        if not items:
            return result

        captured = capture_events(items, run_id, self.store, now=self.now)
        result.new_events = captured.new
        result.updated_events = captured.updated
        result.filtered_events = captured.filtered
        result.duplicate_events = captured.duplicates

        records = self.store.fetch_captured_for_run(run_id)

        geo = geocode_locations(records, self.store, self.geocoder)
        result.unique_locations = geo.unique_queries
        result.cache_hits = geo.cache_hits
        result.geocoded = geo.geocoded
        result.geocode_failed = geo.failed
        result.geocoding_calls = geo.external_calls

        promoted = promote_events(records, self.store, now=self.now)
        result.promoted_events = promoted.promoted
        result.already_promoted = promoted.skipped_existing

        logger.info(
            "[import] run=%s new=%s updated=%s filtered=%s geocoding_calls=%s promoted=%s",
            run_id, result.new_events, result.updated_events, result.filtered_events,
            result.geocoding_calls, result.promoted_events,
        )
        return result
