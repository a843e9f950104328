# tests/test_continuation.py
"""Resumable query, continuation handoff and the crawl entry point."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import make_page, make_search_item

from src.config import Settings
from src.crawl.continuation import (
    CONTINUATION_KEY,
    CRAWLER_STATE_KEY,
    ResumableQuery,
    build_continuation,
    next_input,
)
from src.crawl.run_storage import LocalRunStorage
from src.crawl.state import CrawlOutcome, CrawlState
from src.models import ContinuationData, CrawlInput
from src.pipeline import run_crawl
from src.sources.request_builder import build_page_request


def _limited_state(mark: str = "2025-11-25T19:30:00") -> CrawlState:
    state = CrawlState(total_scraped_events=1200, last_event_date=mark, run_number=0)
    state.mark_terminal(CrawlOutcome.LIMITED)
    return state


class TestResumableQuery:
    def test_resume_replaces_only_date_from(self):
        crawl_input = CrawlInput(
            sortBy="date", countryCode="US", concerts=True,
            dateFrom="2025-11-01", dateTo="2025-12-31",
        )
        query = ResumableQuery.from_input(crawl_input).resume("2025-11-25T19:30:00")
        effective = query.effective_options()
        assert effective.date_from == "2025-11-25T19:30:00"
        assert effective.date_to == "2025-12-31"
        assert effective.country_code == "US"
        assert effective.concerts is True
        assert query.options.date_from == "2025-11-01"

    def test_continuation_mode_input_sets_resume_point(self):
        crawl_input = CrawlInput(
            dateFrom="2025-11-01", continuationMode=True, continuationStartDate="2025-11-20",
        )
        query = ResumableQuery.from_input(crawl_input)
        assert query.resume_from == "2025-11-20"
        assert query.effective_options().date_from == "2025-11-20"

    @pytest.mark.parametrize("mark", ["2025-11-15T19:30:00", "2025-11-16T20:00:00"])
    def test_resumed_weekend_query_stays_inside_the_weekend(self, mark):
        query = ResumableQuery.from_input(CrawlInput(thisWeekendDate=True)).resume(mark)
        effective = query.effective_options()
        assert effective.date_to == "2025-11-16"

        wednesday = datetime(2025, 11, 12, 10, 0, tzinfo=timezone.utc)
        request = build_page_request(effective, [], now=wednesday)
        assert request.date_filter == f"{mark[:10]}T00:00:00,2025-11-16T23:59:59"

    def test_weekend_query_with_explicit_end_keeps_it(self):
        crawl_input = CrawlInput(thisWeekendDate=True, dateTo="2025-11-30")
        query = ResumableQuery.from_input(crawl_input).resume("2025-11-15T19:30:00")
        assert query.effective_options().date_to == "2025-11-30"

    def test_start_date_without_mode_is_ignored(self):
        query = ResumableQuery.from_input(CrawlInput(continuationStartDate="2025-11-20"))
        assert query.resume_from is None


class TestHandoff:
    def test_limited_with_mark_builds_next_run(self):
        query = ResumableQuery.from_input(CrawlInput(dateFrom="2025-11-01", dateTo="2025-12-31"))
        data = build_continuation(_limited_state(), query)
        assert data.continuation_start_date == "2025-11-25T19:30:00"
        assert data.total_events_scraped == 1200
        assert data.original_date_from == "2025-11-01"
        assert data.original_date_to == "2025-12-31"
        assert data.run_number == 1

    @pytest.mark.parametrize("outcome", [CrawlOutcome.EXHAUSTED, CrawlOutcome.MAXITEMS_REACHED])
    def test_other_outcomes_have_no_handoff(self, outcome):
        state = CrawlState(last_event_date="2025-11-25")
        state.mark_terminal(outcome)
        assert build_continuation(state, ResumableQuery.from_input(CrawlInput())) is None

    def test_next_input_keeps_every_other_filter(self):
        original = CrawlInput(sortBy="date", countryCode="US", sports=True, dateTo="2025-12-31", maxItems=5000)
        data = ContinuationData(continuationStartDate="2025-11-25", totalEventsScraped=1200, runNumber=2)
        resumed = next_input(original, data)
        assert resumed.continuation_mode is True
        assert resumed.continuation_start_date == "2025-11-25"
        assert resumed.run_number == 2
        assert resumed.filter_options() == original.filter_options()
        assert resumed.max_items == 5000

    def test_handoff_serializes_with_wire_keys(self):
        data = ContinuationData(continuationStartDate="2025-11-25", totalEventsScraped=1200, runNumber=1)
        assert set(data.model_dump(by_alias=True)) == {
            "continuationStartDate", "totalEventsScraped", "originalDateFrom", "originalDateTo", "runNumber",
        }


def _fetch_factory(pages: dict):
    def fetch(url: str) -> Any:
        page = json.loads(parse_qs(urlparse(url).query)["variables"][0])["page"]
        return pages.get(page)
    return fetch


class TestRunCrawl:
    def _pages(self):
        items = [make_search_item(i) for i in range(200)]
        return {0: make_page(0, 7, 1300, items), 1: {"data": {}}}

    def test_auto_continue_writes_handoff(self, tmp_path):
        result = run_crawl(
            CrawlInput(autoContinue=True, dateFrom="2025-11-01"),
            runs_dir=str(tmp_path),
            run_id="run-1",
            fetch_json=_fetch_factory(self._pages()),
            settings=Settings(),
        )
        handle = LocalRunStorage(str(tmp_path)).get_run("run-1")
        assert handle.read_info().status == "SUCCEEDED"
        assert len(handle.read_items()) == 200
        assert handle.get_value(CRAWLER_STATE_KEY)["hitApiLimit"] is True
        saved = handle.get_value(CONTINUATION_KEY)
        assert saved["continuationStartDate"] == "2025-11-25T19:30:00"
        assert saved["runNumber"] == 1
        assert result.continuation is not None

    def test_without_auto_continue_no_handoff_record(self, tmp_path):
        run_crawl(
            CrawlInput(dateFrom="2025-11-01"),
            runs_dir=str(tmp_path),
            run_id="run-2",
            fetch_json=_fetch_factory(self._pages()),
            settings=Settings(),
        )
        handle = LocalRunStorage(str(tmp_path)).get_run("run-2")
        assert handle.get_value(CONTINUATION_KEY) is None
        assert handle.get_value(CRAWLER_STATE_KEY)["outcome"] == "limited"

    def test_failure_marks_run_failed(self, tmp_path):
        with pytest.raises(ValueError):
            run_crawl(
                CrawlInput(dateFrom="2025-13-50"),
                runs_dir=str(tmp_path),
                run_id="run-3",
                fetch_json=_fetch_factory({}),
                settings=Settings(),
            )
        handle = LocalRunStorage(str(tmp_path)).get_run("run-3")
        assert handle.read_info().status == "FAILED"
