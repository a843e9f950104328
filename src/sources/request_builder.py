"""
Search request builder: one PageRequest per page fetch.

Pure: no I/O, deterministic for identical input. The date filter is compiled
once per run (in build_page_request) and carried unchanged by next_page(), so
a "today"-relative bound cannot drift between pages of the same run.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

from ..models import SearchFilterOptions
from .date_filter import compile_date_filter

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.ticketmaster.com/api/next/graphql"
OPERATION_NAME = "CategorySearch"
PERSISTED_QUERY_SHA256 = "5664b981ff921ec078e3df377fd4623faaa6cd0aa2178e8bdfcba9b41303848b"

# Wire contract of the upstream service, not a tuning knob.
PAGE_SIZE = 200


@dataclass(frozen=True)
class SortOption:
    field: str = "date"
    asc: bool = True

    def to_wire(self) -> str:
        return f"{self.field},{'asc' if self.asc else 'desc'}"


def get_sort_option(sort_by: Optional[str]) -> SortOption:
    """
    'date' / 'relevance' are taken literally; '<field>Asc' / '<field>Desc'
    (any case) select field and direction. Anything else: date ascending.
    """
    if not sort_by:
        return SortOption()
    if sort_by in ("date", "relevance"):
        return SortOption(field=sort_by)

    low = sort_by.strip().lower()
    if low.endswith("asc") and len(low) > 3:
        return SortOption(field=low[:-3], asc=True)
    if low.endswith("desc") and len(low) > 4:
        return SortOption(field=low[:-4], asc=False)
    return SortOption()


@dataclass(frozen=True)
class PageRequest:
    page: int
    scraped_items: int
    classifications: Tuple[str, ...]
    date_filter: Optional[str]
    sort: SortOption = field(default_factory=SortOption)

    country_code: Optional[str] = None
    geo_hash: Optional[str] = None
    distance: Optional[int] = None
    include_tba: Optional[Union[bool, str]] = None
    include_tbd: Optional[Union[bool, str]] = None

    def next_page(self, scraped_items: int) -> "PageRequest":
        return replace(self, page=self.page + 1, scraped_items=scraped_items)

    def variables(self) -> Dict[str, Any]:
        variables: Dict[str, Any] = {
            "type": "event",
            "locale": "en-us",
            "localeStr": "en-us",
            "page": self.page,
            "size": PAGE_SIZE,
            "sort": self.sort.to_wire(),
            "classificationId": list(self.classifications),
            "lineupImages": True,
            "withSeoEvents": True,
            "geoHash": self.geo_hash,
            "countryCode": self.country_code,
            "radius": self.distance,
            "unit": "miles",
            "includeTBA": self.include_tba,
            "includeTBD": self.include_tbd,
        }
        if self.date_filter:
            variables["localStartEndDateTime"] = self.date_filter
        return variables

    def query_params(self) -> Dict[str, str]:
        extensions = {
            "persistedQuery": {"version": 1, "sha256Hash": PERSISTED_QUERY_SHA256},
        }
        return {
            "operationName": OPERATION_NAME,
            "variables": json.dumps(self.variables(), separators=(",", ":")),
            "extensions": json.dumps(extensions, separators=(",", ":")),
        }

    def to_url(self) -> str:
        return f"{SEARCH_URL}?{urlencode(self.query_params())}"


def build_page_request(
    options: SearchFilterOptions,
    classifications: Sequence[str],
    page: int = 0,
    scraped_items: int = 0,
    *,
    now: Optional[datetime] = None,
) -> PageRequest:
    """
    Compose the request for one page.

    Raises InvalidDateError (from the date compiler) on a bad date bound.
    """
    date_range = compile_date_filter(
        this_weekend=options.this_weekend_date,
        date_from=options.date_from,
        date_to=options.date_to,
        now=now,
    )

    request = PageRequest(
        page=page,
        scraped_items=scraped_items,
        classifications=tuple(classifications),
        date_filter=date_range.to_wire() if date_range else None,
        sort=get_sort_option(options.sort_by),
        country_code=options.country_code,
        geo_hash=options.geo_hash,
        distance=options.distance,
        include_tba=options.include_tba,
        include_tbd=options.include_tbd,
    )

    logger.debug(
        "[request] page=%s scraped=%s classifications=%s date_filter=%s sort=%s",
        page, scraped_items, len(request.classifications), request.date_filter, request.sort.to_wire(),
    )
    return request
