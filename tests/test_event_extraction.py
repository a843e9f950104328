# tests/test_event_extraction.py
"""Page-structure parsing and per-item event extraction."""
from __future__ import annotations

from conftest import make_page, make_search_item

from src.sources.events import extract_event, parse_page_response


class TestParsePageResponse:
    def test_valid_page(self):
        page = parse_page_response(make_page(2, 7, 1400, [make_search_item(1)]))
        assert (page.number, page.total_pages, page.total_elements) == (2, 7, 1400)
        assert len(page.items) == 1

    def test_missing_structures_are_none(self):
        assert parse_page_response(None) is None
        assert parse_page_response({}) is None
        assert parse_page_response({"data": None, "errors": [{"message": "boom"}]}) is None
        assert parse_page_response({"data": {"products": None}}) is None
        assert parse_page_response({"data": {"products": {"items": []}}}) is None

    def test_bad_page_numbers_are_none(self):
        payload = make_page(0, 1, 10, [])
        payload["data"]["products"]["page"]["totalPages"] = None
        assert parse_page_response(payload) is None

    def test_missing_items_list_is_empty(self):
        payload = make_page(0, 1, 0, [])
        del payload["data"]["products"]["items"]
        assert parse_page_response(payload).items == []


class TestExtractEvent:
    def test_flat_record_fields(self):
        ev = extract_event(make_search_item(7))
        assert ev["id"] == "G5v00007"
        assert ev["name"] == "Show 7"
        assert ev["localDate"] == "2025-11-25T19:30:00"
        assert ev["dateTitle"] == "Tue, Nov 25"
        assert ev["venueName"] == "The Venue"
        assert ev["streetAddress"] == "1 Main St"
        assert ev["addressLocality"] == "Chicago"
        assert ev["postalCode"] == "60601"
        assert ev["addressCountry"] == "US"
        assert ev["image"] == "https://img.example/1.jpg"
        assert ev["description"] == "Show 7 | The Venue"

    def test_offer_price_parsed_and_typename_dropped(self):
        ev = extract_event(make_search_item(1))
        assert ev["offer"]["price"] == 25.0
        assert ev["offer"]["priceCurrency"] == "USD"
        assert ev["priceRanges"] == [{"min": 25.0, "max": 80.0}]

    def test_performers(self):
        ev = extract_event(make_search_item(1))
        assert ev["performers"] == [{"name": "The Band", "url": "https://www.ticketmaster.com/band"}]

    def test_country_object_and_list_forms(self):
        item = make_search_item(1)
        item["jsonLd"]["location"]["address"]["addressCountry"] = {"name": "Canada"}
        assert extract_event(item)["addressCountry"] == "Canada"
        item["jsonLd"]["location"] = [item["jsonLd"]["location"]]
        assert extract_event(item)["addressCountry"] == "Canada"

    def test_sparse_item_does_not_raise(self):
        ev = extract_event({"name": "Bare"})
        assert ev["name"] == "Bare"
        assert ev["venueName"] is None
        assert ev["offer"]["price"] is None
        assert ev["performers"] == []
