# tests/test_import_pipeline.py
"""Three-phase import of one run, end to end over the in-memory store."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import make_scraped_event

from src.ingest.geocoder import GeocodeResult
from src.ingest.pipeline import ImportPipeline


def _runs(items_by_run):
    runs = MagicMock()
    runs.fetch_items.side_effect = lambda run_id: list(items_by_run[run_id])
    return runs


def _geocoder():
    geo = MagicMock()
    geo.external_calls = 0

    def geocode(query):
        geo.external_calls += 1
        return GeocodeResult(query=query, lat=41.88, lng=-87.62, place_name="Chicago")

    geo.geocode.side_effect = geocode
    return geo


def test_import_run_counts(store):
    items = [make_scraped_event(i) for i in range(3)] + [make_scraped_event(9, dateTitle="TBA")]
    pipeline = ImportPipeline(store, _runs({"run-1": items}), _geocoder())

    result = pipeline.import_run("run-1")

    assert result.ok
    assert result.events_fetched == 4
    assert result.new_events == 3
    assert result.filtered_events == 1
    assert result.unique_locations == 1
    assert result.geocoding_calls == 1
    assert result.promoted_events == 3
    assert all(row["location"] == "POINT(-87.62 41.88)" for row in store.canonical.values())


def test_reimport_converges(store):
    items = [make_scraped_event(i) for i in range(3)]
    geo = _geocoder()
    pipeline = ImportPipeline(store, _runs({"run-1": items}), geo)

    pipeline.import_run("run-1")
    again = pipeline.import_run("run-1")

    assert (again.new_events, again.updated_events) == (0, 3)
    assert again.cache_hits == 1
    assert again.geocoding_calls == 0
    assert again.promoted_events == 0
    assert again.already_promoted == 3
    assert len(store.canonical) == 3


def test_overlapping_runs_share_identities(store):
    pipeline = ImportPipeline(
        store,
        _runs({"a": [make_scraped_event(1), make_scraped_event(2)], "b": [make_scraped_event(2), make_scraped_event(3)]}),
        None,
    )
    pipeline.import_run("a")
    b = pipeline.import_run("b")
    assert (b.new_events, b.updated_events) == (1, 1)
    assert b.promoted_events == 1
    assert len(store.canonical) == 3


def test_empty_run(store):
    result = ImportPipeline(store, _runs({"r": []}), None).import_run("r")
    assert result.events_fetched == 0
    assert store.captured == {}


def test_missing_run_id_is_fatal(store):
    with pytest.raises(ValueError):
        ImportPipeline(store, _runs({}), None).import_run("")
