"""
Paginated crawl state machine.

  FETCHING(page) -> PROCESSING(page) -> FETCHING(page+1)
                                      | EXHAUSTED
                                      | LIMITED
                                      | MAXITEMS_REACHED

Pages are strictly sequential: page N+1's request carries page N's
cumulative count. A payload without a usable page structure is the
upstream ceiling (LIMITED), never an error. Transport errors propagate
after the state has been checkpointed.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models import SearchFilterOptions
from ..sources.date_filter import InvalidDateError, parse_calendar_date
from ..sources.events import PageResponse, describe_payload, extract_events, parse_page_response
from ..sources.request_builder import PAGE_SIZE, PageRequest, build_page_request
from .continuation import ResumableQuery
from .state import CrawlOutcome, CrawlState

logger = logging.getLogger(__name__)

FetchJson = Callable[[str], Any]
EmitBatch = Callable[[List[Dict[str, Any]]], Any]
Checkpoint = Callable[[CrawlState], Any]


def continuation_mark(event: Dict[str, Any]) -> Optional[str]:
    """localDate of the event, else its formatted date title, else None."""
    local_date = event.get("localDate")
    if local_date:
        return str(local_date)
    date_title = event.get("dateTitle")
    if date_title:
        logger.info("[crawl] using dateTitle as fallback for continuation: %s", date_title)
        return str(date_title)
    return None


def _event_day(event: Dict[str, Any]) -> Optional[date]:
    try:
        return parse_calendar_date(event.get("localDate"))
    except InvalidDateError:
        return None


class EventsCrawler:
    """
    Drives one crawl run.

    fetch_json(url) returns the decoded payload (or None for an undecodable
    body); emit(batch) lands the extracted events (run dataset);
    checkpoint(state) persists CrawlState.
    """

    def __init__(
        self,
        fetch_json: FetchJson,
        emit: EmitBatch,
        checkpoint: Checkpoint,
        *,
        near_limit_page: int = 5,
        near_limit_items: int = 1000,
    ) -> None:
        self.fetch_json = fetch_json
        self.emit = emit
        self.checkpoint = checkpoint
        self.near_limit_page = near_limit_page
        self.near_limit_items = near_limit_items

    def run(
        self,
        query: ResumableQuery,
        classifications: Sequence[str],
        state: CrawlState,
        *,
        now: Optional[datetime] = None,
    ) -> CrawlState:
        # InvalidDateError surfaces here, before any fetch.
        options = query.effective_options()
        request: Optional[PageRequest] = build_page_request(
            options, classifications, page=0, scraped_items=state.total_scraped_events, now=now,
        )
        logger.info(
            "[crawl] start date_filter=%s classifications=%s max_items=%s",
            request.date_filter, len(request.classifications), state.max_items,
        )

        while request is not None:
            request = self.process_page(request, state, options)

        logger.info(
            "[crawl] done outcome=%s total_scraped=%s pages=%s last_event_date=%s",
            state.outcome.value, state.total_scraped_events, state.pages_fetched, state.last_event_date,
        )
        return state

    # ------------------------------------------------------------------
    # One page
    # ------------------------------------------------------------------

    def process_page(
        self,
        request: PageRequest,
        state: CrawlState,
        options: SearchFilterOptions,
    ) -> Optional[PageRequest]:
        """Fetch + process one page; return the next request, or None when terminal."""
        try:
            payload = self.fetch_json(request.to_url())
        except Exception:
            self.checkpoint(state)
            raise
        state.pages_fetched += 1

        page = parse_page_response(payload)
        if page is None:
            logger.warning(
                "[crawl] no usable page structure at page %s (scraped=%s) - treating as API pagination limit | %s",
                request.page + 1, request.scraped_items, describe_payload(payload),
            )
            state.total_scraped_events = request.scraped_items
            return self._terminate(state, CrawlOutcome.LIMITED)

        logger.info(
            "[crawl] page=%s/%s total_elements=%s items=%s",
            page.number + 1, page.total_pages, page.total_elements, len(page.items),
        )

        if not page.items:
            if page.total_pages > request.page + 1:
                logger.warning("[crawl] no items on page %s, continuing to next page", request.page + 1)
                return request.next_page(request.scraped_items)
            state.total_scraped_events = request.scraped_items
            return self._terminate(state, self._last_page_outcome(page))

        events = extract_events(page.items)
        found = len(events)
        self._check_date_filter(events, options)

        if state.max_items:
            remaining = max(int(state.max_items) - request.scraped_items, 0)
            if remaining < len(events):
                events = events[:remaining]
                logger.info(
                    "[crawl] limiting events to %s due to maxItems restriction (%s remaining)",
                    len(events), remaining,
                )

        if events:
            self.emit(events)
            mark = continuation_mark(events[-1])
            if mark:
                state.last_event_date = mark
            else:
                logger.warning("[crawl] no suitable date in last event for continuation: %r", events[-1].get("name"))

        total = request.scraped_items + len(events)
        state.total_scraped_events = total
        self.checkpoint(state)

        logger.info(
            "[crawl] page=%s found=%s processed=%s total_scraped=%s",
            request.page + 1, found, len(events), total,
        )
        if request.page >= self.near_limit_page or total >= self.near_limit_items:
            logger.info(
                "[crawl] approaching potential API limits (page %s, %s events)",
                request.page + 1, total,
            )

        if state.max_items_reached(total):
            logger.info("[crawl] reached maxItems limit (%s), stopping at %s items", state.max_items, total)
            return self._terminate(state, CrawlOutcome.MAXITEMS_REACHED)

        if page.total_pages > request.page + 1:
            return request.next_page(total)

        return self._terminate(state, self._last_page_outcome(page))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _last_page_outcome(self, page: PageResponse) -> CrawlOutcome:
        expected_pages = math.ceil(page.total_elements / PAGE_SIZE)
        if expected_pages > page.total_pages:
            logger.warning(
                "[crawl] expected %s pages for %s elements but API only provided %s - pagination limit",
                expected_pages, page.total_elements, page.total_pages,
            )
            return CrawlOutcome.LIMITED
        logger.info("[crawl] reached last page (%s), crawl complete", page.total_pages)
        return CrawlOutcome.EXHAUSTED

    def _terminate(self, state: CrawlState, outcome: CrawlOutcome) -> None:
        state.mark_terminal(outcome)
        self.checkpoint(state)
        return None

    def _check_date_filter(self, events: List[Dict[str, Any]], options: SearchFilterOptions) -> None:
        """Warn when the API returns events dated before the dateFrom bound."""
        if not options.date_from:
            return
        try:
            bound = parse_calendar_date(options.date_from)
        except InvalidDateError:
            return
        early = [e for e in events if (_event_day(e) or bound) < bound]
        if early:
            logger.warning(
                "[crawl] %s events before filter date (%s) - date filter is NOT working properly, e.g. %s",
                len(early), options.date_from, [e.get("localDate") for e in early[:3]],
            )
