"""
Cross-run continuation.

The search API stops paginating after roughly 6-7 pages, so a large result
set is walked as a chain of runs. Each run after the first replaces the
start-of-range bound with the previous run's continuation mark (the date of
the last scraped event).

USAGE INVARIANT (caller responsibility, not validated here):
  every run of a chain must use sortBy=date ascending and byte-identical
  filters apart from the resume point. ResumableQuery carries the full filter
  set so a chain is built from one value instead of re-typed options.

The mark is applied at day granularity by the date compiler, so a resumed run
re-reads the events earlier on the mark's day. Capture deduplicates them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..models import ContinuationData, CrawlInput, SearchFilterOptions
from ..sources.date_filter import parse_calendar_date, weekend_range
from .state import CrawlOutcome, CrawlState

logger = logging.getLogger(__name__)

CONTINUATION_KEY = "CONTINUATION_DATA"
CRAWLER_STATE_KEY = "CRAWLER_STATE"


@dataclass(frozen=True)
class ResumableQuery:
    options: SearchFilterOptions
    resume_from: Optional[str] = None

    @classmethod
    def from_input(cls, crawl_input: CrawlInput) -> "ResumableQuery":
        resume_from = None
        if crawl_input.continuation_mode and crawl_input.continuation_start_date:
            resume_from = crawl_input.continuation_start_date
            logger.info("[continuation] continuation mode enabled - starting from %s", resume_from)
        return cls(options=crawl_input.filter_options(), resume_from=resume_from)

    def resume(self, mark: str) -> "ResumableQuery":
        return replace(self, resume_from=mark)

    def effective_options(self) -> SearchFilterOptions:
        if not self.resume_from:
            return self.options
        update = {"date_from": self.resume_from}
        if self.options.this_weekend_date and not self.options.date_to:
            # Pin the Sunday of the mark's weekend as date_to.
            mark_day = parse_calendar_date(self.resume_from)
            weekend = weekend_range(datetime.combine(mark_day, datetime.min.time()))
            update["date_to"] = weekend.end.date().isoformat()
        return self.options.model_copy(update=update)


def build_continuation(state: CrawlState, query: ResumableQuery) -> Optional[ContinuationData]:
    """Handoff for the next run, or None when the crawl did not stop at the ceiling."""
    if state.outcome is not CrawlOutcome.LIMITED or not state.last_event_date:
        return None
    return ContinuationData(
        continuation_start_date=state.last_event_date,
        total_events_scraped=state.total_scraped_events,
        original_date_from=query.options.date_from,
        original_date_to=query.options.date_to,
        run_number=state.run_number + 1,
    )


def next_input(crawl_input: CrawlInput, data: ContinuationData) -> CrawlInput:
    """Crawl input for the run that resumes from `data`; all other filters unchanged."""
    return crawl_input.model_copy(
        update={
            "continuation_mode": True,
            "continuation_start_date": data.continuation_start_date,
            "run_number": data.run_number,
        }
    )
