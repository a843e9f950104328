# tests/test_identity.py
"""Capture identity: native id first, normalized composite otherwise."""
from __future__ import annotations

from src.ingest.identity import derive_identity


def test_native_id_wins():
    assert derive_identity({"id": "G5vYZ9", "name": "Anything"}) == "tm_G5vYZ9"


def test_composite_is_lowercased_and_non_alnum_replaced():
    key = derive_identity({
        "name": "Taylor Swift: The Eras Tour!",
        "venueName": "Soldier Field",
        "localDate": "2025-06-01T19:00:00",
    })
    assert key == "event_taylor_swift__the_eras_tour__soldier_field_2025_06_01"


def test_composite_without_venue_or_date():
    assert derive_identity({"name": "Show"}) == "event_show_unknown_venue_no_date"


def test_composite_parts_are_truncated():
    key = derive_identity({"name": "a" * 80, "venueName": "b" * 80, "localDate": "2025-06-01"})
    assert key == f"event_{'a' * 50}_{'b' * 30}_2025_06_01"
    assert len(key) <= 100


def test_same_event_twice_same_identity():
    item = {"name": "Jazz Night", "venueName": "Blue Note", "localDate": "2025-07-04"}
    assert derive_identity(item) == derive_identity(dict(item))
