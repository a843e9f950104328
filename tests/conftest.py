# tests/conftest.py
"""Shared fakes: an in-memory EventStore and search-payload builders."""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import pytest

from src.models import GeocodeCacheEntry


class InMemoryEventStore:
    """EventStore with the same upsert / conflict semantics as the Supabase tables."""

    def __init__(self) -> None:
        self.captured: Dict[str, Dict[str, Any]] = {}
        self.canonical: Dict[str, Dict[str, Any]] = {}     # source_event_id -> row
        self.cache: Dict[str, GeocodeCacheEntry] = {}
        self.runs_log: Dict[str, Dict[str, Any]] = {}
        self.cache_reads = 0

    def upsert_captured_many(self, rows: Sequence[Mapping[str, Any]]) -> Set[str]:
        new = set()
        for row in rows:
            if row["id"] not in self.captured:
                new.add(row["id"])
            self.captured[row["id"]] = copy.deepcopy(dict(row))
        return new

    def fetch_captured_for_run(self, run_id: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.captured.values() if r.get("run_id") == run_id]

    def find_promoted_identities(self, ids: Iterable[str]) -> Set[str]:
        return {i for i in ids if i in self.canonical}

    def insert_canonical(self, rows: Sequence[Mapping[str, Any]]) -> int:
        inserted = 0
        for row in rows:
            if row["source_event_id"] in self.canonical:
                continue
            self.canonical[row["source_event_id"]] = dict(row)
            inserted += 1
        return inserted

    def get_cache_entry(self, query: str) -> Optional[GeocodeCacheEntry]:
        self.cache_reads += 1
        return self.cache.get(query)

    def put_cache_entry(self, entry: GeocodeCacheEntry) -> None:
        self.cache.setdefault(entry.query, entry)

    def find_processed_runs(self, run_ids: Iterable[str]) -> Set[str]:
        return {r for r in run_ids if r in self.runs_log}

    def log_processed_run(self, run_id: str, result: Mapping[str, Any]) -> None:
        self.runs_log[run_id] = dict(result)


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


# ---------------------------------------------------------------------------
# Search API payloads
# ---------------------------------------------------------------------------

def make_search_item(
    idx: int,
    *,
    local_date: Optional[str] = "2025-11-25T19:30:00",
    name: Optional[str] = None,
    city: str = "Chicago",
) -> Dict[str, Any]:
    return {
        "id": f"G5v{idx:05d}",
        "name": name if name is not None else f"Show {idx}",
        "url": f"https://www.ticketmaster.com/event/G5v{idx:05d}",
        "segmentName": "Music",
        "genreName": "Rock",
        "dates": {"localDate": local_date, "dateTBA": False, "timeTBA": False},
        "datesFormatted": {"dateTitle": "Tue, Nov 25", "dateSubTitle": "7:30 PM"},
        "priceRanges": [{"min": 25.0, "max": 80.0, "__typename": "PriceRange"}],
        "jsonLd": {
            "description": f"Show {idx} | The Venue",
            "image": "https://img.example/1.jpg",
            "location": {
                "name": "The Venue",
                "sameAs": "https://www.ticketmaster.com/venue/1",
                "address": {
                    "streetAddress": "1 Main St",
                    "addressLocality": city,
                    "addressRegion": "IL",
                    "postalCode": "60601",
                    "addressCountry": "US",
                },
            },
            "offers": {
                "url": "https://www.ticketmaster.com/buy/1",
                "availabilityStarts": "2025-01-01T10:00:00",
                "price": "25.00",
                "priceCurrency": "USD",
            },
            "performer": [{"name": "The Band", "sameAs": "https://www.ticketmaster.com/band"}],
        },
    }


def make_page(
    number: int,
    total_pages: int,
    total_elements: int,
    items: List[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "data": {
            "products": {
                "page": {
                    "number": number,
                    "totalPages": total_pages,
                    "totalElements": total_elements,
                },
                "items": items,
            }
        }
    }


def make_scraped_event(idx: int, **overrides: Any) -> Dict[str, Any]:
    """A dataset item as emitted by the crawler (camelCase, flat)."""
    ev = {
        "id": f"G5v{idx:05d}",
        "url": f"https://www.ticketmaster.com/event/G5v{idx:05d}",
        "name": f"Show {idx}",
        "description": f"Show {idx} | The Venue",
        "image": "https://img.example/1.jpg",
        "segmentName": "Music",
        "genreName": "Rock",
        "dateTitle": "Tue, Nov 25",
        "dateSubTitle": "7:30 PM",
        "localDate": "2025-11-25T19:30:00",
        "dateTBA": False,
        "timeTBA": False,
        "venueName": "The Venue",
        "streetAddress": "1 Main St",
        "addressLocality": "Chicago",
        "addressRegion": "IL",
        "postalCode": "60601",
        "addressCountry": "US",
        "placeUrl": "https://www.ticketmaster.com/venue/1",
        "offer": {"offerUrl": None, "availabilityStarts": None, "price": 25.0, "priceCurrency": "USD"},
        "priceRanges": [{"min": 25.0, "max": 80.0}],
        "performers": [{"name": "The Band", "url": None}],
    }
    ev.update(overrides)
    return ev
