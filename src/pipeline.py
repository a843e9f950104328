from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from .config import Settings
from .crawl.continuation import (
    CONTINUATION_KEY,
    CRAWLER_STATE_KEY,
    ResumableQuery,
    build_continuation,
    next_input,
)
from .crawl.engine import EventsCrawler
from .crawl.run_storage import STATUS_FAILED, STATUS_SUCCEEDED, LocalRunStorage
from .crawl.state import CrawlState
from .logging_utils import configure_logging
from .models import ContinuationData, CrawlInput
from .sources.classifications import parse_classifications_to_scrape
from .sources.http import http_get_json

logger = logging.getLogger(__name__)


@dataclass
class CrawlRunResult:
    run_id: str
    state: CrawlState
    continuation: Optional[ContinuationData] = None


def _default_fetch_json(timeout_s: int) -> Callable[[str], Any]:
    def fetch(url: str) -> Any:
        return http_get_json(url, timeout_s=timeout_s).json
    return fetch


def run_crawl(
    crawl_input: CrawlInput,
    *,
    runs_dir: Optional[str] = None,
    run_id: Optional[str] = None,
    fetch_json: Optional[Callable[[str], Any]] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> CrawlRunResult:
    """
    One crawl run: create the run directory, walk pages until a terminal
    state, persist CRAWLER_STATE (and CONTINUATION_DATA when the ceiling was
    hit with autoContinue set).

    The run is marked FAILED and the error re-raised on any exception,
    including InvalidDateError from the date compiler.
    """
    settings = settings or Settings.from_env()
    storage = LocalRunStorage(runs_dir or settings.runs_dir)
    handle = storage.create_run(run_id)
    fetch_json = fetch_json or _default_fetch_json(settings.request_timeout_s)

    query = ResumableQuery.from_input(crawl_input)
    state = CrawlState(
        options=query.options.model_dump(by_alias=True, exclude_none=True),
        max_items=crawl_input.max_items,
        auto_continue=crawl_input.auto_continue,
        run_number=crawl_input.run_number,
    )

    def checkpoint(s: CrawlState) -> None:
        handle.set_value(CRAWLER_STATE_KEY, s.to_dict())

    crawler = EventsCrawler(
        fetch_json,
        handle.push_data,
        checkpoint,
        near_limit_page=settings.near_limit_page,
        near_limit_items=settings.near_limit_items,
    )

    try:
        classifications = parse_classifications_to_scrape(query.options)
        logger.info("[crawl] run=%s classifications=%s", handle.run_id, classifications or "all")
        crawler.run(query, classifications, state, now=now)
    except Exception:
        handle.finish(STATUS_FAILED)
        raise

    checkpoint(state)

    continuation = build_continuation(state, query)
    if continuation is not None:
        if state.auto_continue:
            handle.set_value(CONTINUATION_KEY, continuation.model_dump(by_alias=True))
            logger.info(
                "[crawl] continuation data saved: next run starts from %s (run #%s)",
                continuation.continuation_start_date, continuation.run_number,
            )
        else:
            logger.info(
                "[crawl] API limit hit. To continue, start a run with "
                "continuationMode=true continuationStartDate=%s",
                continuation.continuation_start_date,
            )

    handle.finish(STATUS_SUCCEEDED)
    return CrawlRunResult(run_id=handle.run_id, state=state, continuation=continuation)


def load_input(args: argparse.Namespace, storage: LocalRunStorage) -> CrawlInput:
    raw: dict = {}
    if args.input:
        with open(args.input, "r", encoding="utf-8") as f:
            raw = json.load(f)
    crawl_input = CrawlInput.model_validate(raw)

    if args.max_items is not None:
        crawl_input = crawl_input.model_copy(update={"max_items": args.max_items})

    if args.continue_from:
        data = storage.get_run(args.continue_from).get_value(CONTINUATION_KEY)
        if not data:
            raise ValueError(f"Run {args.continue_from} has no {CONTINUATION_KEY} record")
        crawl_input = next_input(crawl_input, ContinuationData.model_validate(data))

    return crawl_input


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl Ticketmaster category search into a local run")
    parser.add_argument("--input", help="Path to crawl input JSON")
    parser.add_argument("--run-id", help="Run id (default: timestamp + random suffix)")
    parser.add_argument("--runs-dir", help="Runs directory (default: RUNS_DIR or data/runs)")
    parser.add_argument("--continue-from", metavar="RUN_ID", help="Resume from a run's CONTINUATION_DATA")
    parser.add_argument("--max-items", type=int, default=None)
    args = parser.parse_args(argv)

    configure_logging()
    settings = Settings.from_env()
    storage = LocalRunStorage(args.runs_dir or settings.runs_dir)

    crawl_input = load_input(args, storage)
    result = run_crawl(
        crawl_input,
        runs_dir=storage.root,
        run_id=args.run_id,
        settings=settings,
    )

    # ---------------------------------------------------------------
    # Deterministic, grep-friendly summary line.
    # grep '[crawl][summary]' /tmp/crawl.log
    # ---------------------------------------------------------------
    s = result.state
    print(
        f"[crawl][summary]"
        f" run_id={result.run_id}"
        f" run_number={s.run_number}"
        f" outcome={s.outcome.value}"
        f" pages={s.pages_fetched}"
        f" total_scraped={s.total_scraped_events}"
        f" hit_api_limit={s.hit_api_limit}"
        f" last_event_date={s.last_event_date}"
        f" continuation_saved={result.continuation is not None and s.auto_continue}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
