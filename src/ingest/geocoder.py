"""
Mapbox forward geocoding with bounded retries.

Uses the Mapbox Geocoding v5 `mapbox.places` endpoint; the first feature's
`center` ([lon, lat]) and `place_name` are kept. Caching lives one level up
(ingest.geocode_phase); this class only talks to the API.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote

import requests

from .location import simplify_query

logger = logging.getLogger(__name__)

MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"


@dataclass(frozen=True)
class GeocodeResult:
    query: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    place_name: Optional[str] = None
    # query actually answered by the API (may be the simplified form)
    resolved_query: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.lat is not None and self.lng is not None


def to_point(lng: float, lat: float) -> str:
    """PostGIS WKT for a geography(Point) column."""
    return f"POINT({lng} {lat})"


class MapboxGeocoder:
    def __init__(
        self,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        max_attempts: int = 3,
        backoff_s: float = 1.0,
        min_delay_s: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not access_token:
            raise ValueError("Mapbox access token is required")
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.max_attempts = max(1, max_attempts)
        self.backoff_s = backoff_s
        self.min_delay_s = min_delay_s
        self._sleep = sleep
        self._clock = clock
        self._last_request_ts: Optional[float] = None
        self.external_calls = 0

    def _respect_rate_limit(self) -> None:
        if self._last_request_ts is None:
            return
        elapsed = self._clock() - self._last_request_ts
        if elapsed < self.min_delay_s:
            self._sleep(self.min_delay_s - elapsed)

    def lookup(self, query: str) -> Optional[GeocodeResult]:
        """
        One API call. Returns None when Mapbox has no feature for the query.
        Raises requests.RequestException on transport / HTTP errors and
        ValueError on an undecodable body.
        """
        self._respect_rate_limit()
        url = f"{MAPBOX_GEOCODING_URL}/{quote(query, safe='')}.json"
        self.external_calls += 1
        try:
            r = self.session.get(
                url,
                params={"access_token": self.access_token, "limit": 1},
                timeout=self.timeout_s,
            )
            r.raise_for_status()
            data = r.json()
        finally:
            self._last_request_ts = self._clock()

        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            return None
        feature = features[0]
        center = feature.get("center") or []
        if len(center) < 2:
            return None
        lng, lat = float(center[0]), float(center[1])
        return GeocodeResult(
            query=query,
            lat=lat,
            lng=lng,
            place_name=feature.get("place_name"),
            resolved_query=query,
        )

    def geocode(self, query: str) -> GeocodeResult:
        """
        Resolve *query*, never raising.

        Up to max_attempts calls with increasing backoff (backoff_s * attempt)
        while the API errors; an empty answer ends the retries early. Then one
        more call with the simplified query (text before the first comma).
        A result with ok == False means every attempt failed.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self.lookup(query)
            except (requests.RequestException, ValueError) as e:
                logger.warning(
                    "[geocode] attempt %s/%s failed for %r: %s: %s",
                    attempt, self.max_attempts, query, type(e).__name__, e,
                )
                if attempt < self.max_attempts:
                    self._sleep(self.backoff_s * attempt)
                continue
            if result is not None:
                return result
            logger.info("[geocode] no results for %r", query)
            break

        simplified = simplify_query(query)
        if simplified and simplified != query:
            logger.info("[geocode] retrying with simplified query %r", simplified)
            try:
                result = self.lookup(simplified)
            except (requests.RequestException, ValueError) as e:
                logger.warning("[geocode] simplified lookup failed for %r: %s", simplified, e)
                result = None
            if result is not None:
                return GeocodeResult(
                    query=query,
                    lat=result.lat,
                    lng=result.lng,
                    place_name=result.place_name,
                    resolved_query=simplified,
                )

        return GeocodeResult(query=query)
