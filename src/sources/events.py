"""
Search response parsing and per-item event extraction.

parse_page_response() is the single place that decides whether a payload
has a usable page structure; None means "treat as the pagination ceiling".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageResponse:
    number: int
    total_pages: int
    total_elements: int
    items: List[Dict[str, Any]] = field(default_factory=list)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_page_response(payload: Any) -> Optional[PageResponse]:
    """
    Return the page structure of a CategorySearch payload, or None when the
    payload carries no usable data / products / page block.
    """
    if not isinstance(payload, Mapping):
        return None
    data = payload.get("data")
    if not isinstance(data, Mapping):
        return None
    products = data.get("products")
    if not isinstance(products, Mapping):
        return None
    page = products.get("page")
    if not isinstance(page, Mapping):
        return None

    number = _as_int(page.get("number"))
    total_pages = _as_int(page.get("totalPages"))
    total_elements = _as_int(page.get("totalElements"))
    if number is None or total_pages is None or total_elements is None:
        return None

    items = products.get("items")
    if not isinstance(items, list):
        items = []

    return PageResponse(
        number=number,
        total_pages=total_pages,
        total_elements=total_elements,
        items=[it for it in items if isinstance(it, Mapping)],
    )


def describe_payload(payload: Any) -> Dict[str, Any]:
    """Small diagnostic summary of a (possibly malformed) payload for logs."""
    if not isinstance(payload, Mapping):
        return {"type": type(payload).__name__}
    out: Dict[str, Any] = {"keys": sorted(payload.keys())[:10]}
    errors = payload.get("errors")
    if errors:
        out["errors"] = [
            (e.get("message") if isinstance(e, Mapping) else str(e)) for e in errors[:3]
        ] if isinstance(errors, list) else str(errors)[:300]
    return out


# ---------------------------------------------------------------------------
# Item extraction
# ---------------------------------------------------------------------------

def _dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _parse_price(price: Any) -> Optional[float]:
    if price is None or price == "":
        return None
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return float(price)
    try:
        return float(str(price).replace(",", ""))
    except ValueError:
        return None


def _country(value: Any) -> Optional[str]:
    value = _first(value)
    if isinstance(value, Mapping):
        value = value.get("name")
    return value if isinstance(value, str) else None


def extract_performers(performer: Any) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for perf in performer if isinstance(performer, list) else [performer]:
        if not isinstance(perf, Mapping):
            continue
        out.append({"name": perf.get("name"), "url": perf.get("sameAs")})
    return out


def extract_event(item: Mapping[str, Any]) -> Dict[str, Any]:
    json_ld = _dict(item.get("jsonLd"))
    location = _dict(_first(json_ld.get("location")))
    address = _dict(location.get("address"))
    offers = _dict(_first(json_ld.get("offers")))
    dates = _dict(item.get("dates"))
    dates_formatted = _dict(item.get("datesFormatted"))

    image = _first(json_ld.get("image"))
    if isinstance(image, Mapping):
        image = image.get("url")

    price_ranges = []
    for rng in item.get("priceRanges") or []:
        if isinstance(rng, Mapping):
            price_ranges.append({k: v for k, v in rng.items() if k != "__typename"})

    return {
        "id": item.get("id"),
        "url": item.get("url"),
        "name": item.get("name"),
        "description": json_ld.get("description"),
        "image": image,
        "segmentName": item.get("segmentName"),
        "genreName": item.get("genreName"),
        "dateTitle": dates_formatted.get("dateTitle"),
        "dateSubTitle": dates_formatted.get("dateSubTitle"),
        "localDate": dates.get("localDate"),
        "dateTBA": dates.get("dateTBA"),
        "timeTBA": dates.get("timeTBA"),
        "venueName": location.get("name"),
        "streetAddress": address.get("streetAddress"),
        "addressLocality": address.get("addressLocality"),
        "addressRegion": address.get("addressRegion"),
        "postalCode": address.get("postalCode"),
        "addressCountry": _country(address.get("addressCountry")),
        "placeUrl": location.get("sameAs"),
        "offer": {
            "offerUrl": offers.get("url"),
            "availabilityStarts": offers.get("availabilityStarts"),
            "price": _parse_price(offers.get("price")),
            "priceCurrency": offers.get("priceCurrency") or None,
        },
        "priceRanges": price_ranges,
        "performers": extract_performers(json_ld.get("performer") or []),
    }


def extract_events(items: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [extract_event(it) for it in items or []]
