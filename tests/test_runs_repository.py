# tests/test_runs_repository.py
"""Apify run repository over a mocked requests session."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from src.ingest.runs import ApifyRunRepository


def _response(payload, status=200):
    r = MagicMock()
    r.json.return_value = payload
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(str(status))
    return r


def _repo(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return ApifyRunRepository("apify_api_x", "someone/ticketmaster-crawler", session=session), session


def test_list_runs_maps_items_and_addresses_actor_with_tilde():
    repo, session = _repo(_response({"data": {"items": [
        {"id": "r2", "status": "SUCCEEDED", "startedAt": "2025-11-20T09:00:00.000Z", "finishedAt": None},
        {"id": "r1", "status": "FAILED", "startedAt": "2025-11-19T09:00:00.000Z"},
    ]}}))
    runs = repo.list_runs(limit=5)
    assert [r.id for r in runs] == ["r2", "r1"]
    assert runs[0].started_date == "2025-11-20"
    url = session.get.call_args[0][0]
    assert url.endswith("/acts/someone~ticketmaster-crawler/runs")
    assert session.get.call_args[1]["params"] == {"limit": 5, "desc": 1}
    assert session.get.call_args[1]["headers"]["Authorization"] == "Bearer apify_api_x"


def test_fetch_items_resolves_default_dataset():
    repo, session = _repo(
        _response({"data": {"id": "r1", "defaultDatasetId": "ds1"}}),
        _response([{"name": "a"}, {"name": "b"}]),
    )
    assert repo.fetch_items("r1") == [{"name": "a"}, {"name": "b"}]
    urls = [c[0][0] for c in session.get.call_args_list]
    assert urls[0].endswith("/actor-runs/r1")
    assert urls[1].endswith("/datasets/ds1/items")


def test_run_without_dataset_fails():
    repo, _ = _repo(_response({"data": {"id": "r1"}}))
    with pytest.raises(RuntimeError, match="No dataset"):
        repo.fetch_items("r1")


def test_http_error_propagates():
    repo, _ = _repo(_response({}, status=404))
    with pytest.raises(requests.HTTPError):
        repo.fetch_items("missing")


def test_credentials_required():
    with pytest.raises(ValueError):
        ApifyRunRepository("", "actor")
