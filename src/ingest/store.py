from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set

from ..models import GeocodeCacheEntry


class EventStore(Protocol):
    """
    Persistence used by the import pipeline.

    Every write is an idempotent upsert or a conflict-checked insert keyed by
    a stable identity, so overlapping or repeated imports converge.
    """

    # capture (public.events)
    def upsert_captured_many(self, rows: Sequence[Mapping[str, Any]]) -> Set[str]:
        """Upsert by id; return the ids that did not exist before."""
        ...

    def fetch_captured_for_run(self, run_id: str) -> List[Dict[str, Any]]: ...

    # promotion (public.general_events)
    def find_promoted_identities(self, ids: Iterable[str]) -> Set[str]: ...

    def insert_canonical(self, rows: Sequence[Mapping[str, Any]]) -> int: ...

    # geocode cache (public.geocode_cache)
    def get_cache_entry(self, query: str) -> Optional[GeocodeCacheEntry]: ...

    def put_cache_entry(self, entry: GeocodeCacheEntry) -> None: ...

    # processed runs (public.apify_runs_log)
    def find_processed_runs(self, run_ids: Iterable[str]) -> Set[str]: ...

    def log_processed_run(self, run_id: str, result: Mapping[str, Any]) -> None: ...
