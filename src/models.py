from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SearchFilterOptions(BaseModel):
    """
    User-facing search filters, keyed the same way as the crawl input JSON.

    Continuation runs must reuse these byte-identically (apart from the
    resume point), see crawl.continuation.ResumableQuery.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    sort_by: Optional[str] = Field(default=None, alias="sortBy")
    country_code: Optional[str] = Field(default=None, alias="countryCode")
    geo_hash: Optional[str] = Field(default=None, alias="geoHash")
    distance: Optional[int] = None

    concerts: bool = False
    sports: bool = False
    arts_theater: bool = Field(default=False, alias="arts-theater")
    family: bool = False
    classification_ids: List[str] = Field(default_factory=list, alias="classificationIds")

    this_weekend_date: bool = Field(default=False, alias="thisWeekendDate")
    date_from: Optional[str] = Field(default=None, alias="dateFrom")
    date_to: Optional[str] = Field(default=None, alias="dateTo")

    # "yes" | "no" | "only", passed through to the API verbatim
    include_tba: Optional[Union[bool, str]] = Field(default=None, alias="includeTBA")
    include_tbd: Optional[Union[bool, str]] = Field(default=None, alias="includeTBD")


class CrawlInput(SearchFilterOptions):
    max_items: Optional[int] = Field(default=None, alias="maxItems")

    continuation_mode: bool = Field(default=False, alias="continuationMode")
    continuation_start_date: Optional[str] = Field(default=None, alias="continuationStartDate")
    auto_continue: bool = Field(default=False, alias="autoContinue")
    run_number: int = Field(default=0, alias="runNumber")

    def filter_options(self) -> SearchFilterOptions:
        return SearchFilterOptions.model_validate(
            self.model_dump(include=set(SearchFilterOptions.model_fields))
        )


class ContinuationData(BaseModel):
    """Handoff written at the end of a crawl that hit the pagination ceiling."""
    model_config = ConfigDict(populate_by_name=True)

    continuation_start_date: str = Field(alias="continuationStartDate")
    total_events_scraped: int = Field(alias="totalEventsScraped")
    original_date_from: Optional[str] = Field(default=None, alias="originalDateFrom")
    original_date_to: Optional[str] = Field(default=None, alias="originalDateTo")
    run_number: int = Field(default=1, alias="runNumber")


class CapturedEvent(BaseModel):
    """
    One scraped event as landed in the capture table (public.events).

    `id` is the derived identity (see ingest.identity); everything else is
    refreshed on every capture of the same identity.
    """
    id: str
    ticketmaster_id: Optional[str] = None
    name: str
    url: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    segment_name: Optional[str] = None
    genre_name: Optional[str] = None

    date_title: Optional[str] = None
    date_sub_title: Optional[str] = None
    local_date: Optional[str] = None
    date_tba: Optional[bool] = None
    time_tba: Optional[bool] = None

    venue_name: Optional[str] = None
    street_address: Optional[str] = None
    address_locality: Optional[str] = None
    address_region: Optional[str] = None
    postal_code: Optional[str] = None
    address_country: Optional[str] = None
    place_url: Optional[str] = None

    offer: Optional[Dict[str, Any]] = None
    price_ranges: List[Dict[str, Any]] = Field(default_factory=list)
    performers: List[Dict[str, Any]] = Field(default_factory=list)

    run_id: Optional[str] = None
    raw_event_data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None


class GeocodeCacheEntry(BaseModel):
    query: str                      # normalized location query
    status: str = "ok"              # ok | failed
    lat: Optional[float] = None
    lng: Optional[float] = None
    place_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_failed(self) -> bool:
        return self.status == "failed" or self.lat is None or self.lng is None


class CanonicalEvent(BaseModel):
    """One promoted row in public.general_events."""
    event_id: str
    source_event_id: str
    ticketmaster_id: Optional[str] = None

    title: str
    description: Optional[str] = None
    website_url: Optional[str] = None
    location: Optional[str] = None          # PostGIS "POINT(lon lat)"
    location_name: Optional[str] = None

    event_start_date: Optional[str] = None
    event_end_date: Optional[str] = None
    event_start_time: str = "19:00:00"
    event_end_time: str = "23:00:00"

    banner_url: Optional[str] = None
    auto_import: bool = True
    created_at: Optional[datetime] = None
    raw_event_data: Dict[str, Any] = Field(default_factory=dict)


class RunInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    status: str = "SUCCEEDED"
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    finished_at: Optional[str] = Field(default=None, alias="finishedAt")

    @property
    def started_date(self) -> str:
        return (self.started_at or "")[:10]
