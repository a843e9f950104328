from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0",
    "Accept": "application/json",
}


@dataclass
class HttpResult:
    url: str
    status_code: int
    text: str
    json: Any = None


def http_get_json(
    url: str,
    *,
    timeout_s: int = 30,
    session: Optional[requests.Session] = None,
) -> HttpResult:
    """
    GET a JSON endpoint.

    Transport errors (connection reset, timeout) propagate as
    requests.RequestException; there is no retry here.

    HTTP error statuses and non-JSON bodies do NOT raise: the search API
    answers with error or empty payloads exactly at its pagination ceiling,
    and the crawler decides what that means. `json` is None when the body
    could not be decoded.
    """
    logger.debug("[http] GET %s", url[:200])
    getter = session.get if session is not None else requests.get
    r = getter(url, timeout=timeout_s, headers=DEFAULT_HEADERS)

    try:
        payload = r.json()
    except ValueError:
        payload = None

    if r.status_code >= 400:
        logger.warning("[http] status=%s url=%s", r.status_code, url[:200])

    return HttpResult(url=r.url, status_code=r.status_code, text=r.text, json=payload)
