from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CrawlOutcome(str, Enum):
    RUNNING = "running"
    EXHAUSTED = "exhausted"                # every server-declared page was read
    LIMITED = "limited"                    # upstream pagination ceiling hit
    MAXITEMS_REACHED = "maxitems_reached"  # caller cap met

    @property
    def is_terminal(self) -> bool:
        return self is not CrawlOutcome.RUNNING


@dataclass
class CrawlState:
    """
    Run-scoped crawl progress. One instance per crawl run, passed by
    reference to every page step and persisted through a checkpoint after
    every page and on every terminal transition.
    """
    options: Dict[str, Any] = field(default_factory=dict)
    max_items: Optional[int] = None
    auto_continue: bool = False
    run_number: int = 0

    total_scraped_events: int = 0
    last_event_date: Optional[str] = None
    hit_api_limit: bool = False
    pages_fetched: int = 0
    outcome: CrawlOutcome = CrawlOutcome.RUNNING

    def mark_terminal(self, outcome: CrawlOutcome) -> None:
        self.outcome = outcome
        self.hit_api_limit = outcome is CrawlOutcome.LIMITED

    def max_items_reached(self, scraped: int) -> bool:
        return bool(self.max_items) and scraped >= int(self.max_items or 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.options,
            "maxItems": self.max_items,
            "autoContinue": self.auto_continue,
            "runNumber": self.run_number,
            "totalScrapedEvents": self.total_scraped_events,
            "lastEventDate": self.last_event_date,
            "hitApiLimit": self.hit_api_limit,
            "pagesFetched": self.pages_fetched,
            "outcome": self.outcome.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlState":
        reserved = {
            "maxItems", "autoContinue", "runNumber", "totalScrapedEvents",
            "lastEventDate", "hitApiLimit", "pagesFetched", "outcome",
        }
        return cls(
            options={k: v for k, v in data.items() if k not in reserved},
            max_items=data.get("maxItems"),
            auto_continue=bool(data.get("autoContinue")),
            run_number=int(data.get("runNumber") or 0),
            total_scraped_events=int(data.get("totalScrapedEvents") or 0),
            last_event_date=data.get("lastEventDate"),
            hit_api_limit=bool(data.get("hitApiLimit")),
            pages_fetched=int(data.get("pagesFetched") or 0),
            outcome=CrawlOutcome(data.get("outcome") or CrawlOutcome.RUNNING.value),
        )
