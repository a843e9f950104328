# tests/test_location_query.py
"""Location query derivation and the venue-name heuristic."""
from __future__ import annotations

from src.ingest.location import (
    build_location_query,
    extract_venue_name,
    location_name,
    normalize_query,
    simplify_query,
)


def test_address_parts_joined_in_order_skipping_empty():
    rec = {
        "street_address": "1 Main St",
        "address_locality": "Chicago",
        "postal_code": "",
        "address_region": "IL",
        "address_country": "US",
    }
    assert build_location_query(rec) == "1 Main St, Chicago, IL, US"


def test_no_address_falls_back_to_venue_from_description():
    rec = {"description": "Big Show | Early Set | Metro Chicago ", "venue_name": "Metro"}
    assert build_location_query(rec) == "Metro Chicago"


def test_venue_name_fallback_chain():
    assert extract_venue_name({"description": "No delimiter", "venue_name": "Metro"}) == "Metro"
    assert extract_venue_name({"description": "Trailing |", "address_locality": "Chicago"}) == "Chicago"
    assert extract_venue_name({}) is None
    assert build_location_query({}) is None


def test_normalize_query_collapses_case_and_whitespace():
    assert normalize_query("  1 Main  St,\tChicago ") == "1 main st, chicago"


def test_simplify_query():
    assert simplify_query("1 Main St, Chicago, IL") == "1 Main St"
    assert simplify_query("Chicago") is None
    assert simplify_query(", Chicago") is None


def test_location_name():
    rec = {"venue_name": "Metro", "address_locality": "Chicago", "address_country": "US"}
    assert location_name(rec) == "Metro, Chicago, US"
    assert location_name({}) is None
