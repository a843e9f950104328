from __future__ import annotations

from typing import Dict, List

from ..models import SearchFilterOptions

# Ticketmaster segment ids for the four top-level discover categories.
CATEGORY_CLASSIFICATION_IDS: Dict[str, str] = {
    "concerts": "KZFzniwnSyZfZ7v7nJ",
    "sports": "KZFzniwnSyZfZ7v7nE",
    "arts-theater": "KZFzniwnSyZfZ7v7na",
    "family": "KZFzniwnSyZfZ7v7n1",
}


def parse_classifications_to_scrape(options: SearchFilterOptions) -> List[str]:
    """
    Ordered, de-duplicated classification ids for the enabled category flags,
    followed by any explicit `classificationIds` from the input.

    An empty list means "no category restriction" (all categories), never
    "exclude everything".
    """
    flags = {
        "concerts": options.concerts,
        "sports": options.sports,
        "arts-theater": options.arts_theater,
        "family": options.family,
    }

    out: List[str] = []
    seen = set()
    for category, enabled in flags.items():
        if not enabled:
            continue
        cid = CATEGORY_CLASSIFICATION_IDS[category]
        if cid not in seen:
            seen.add(cid)
            out.append(cid)

    for cid in options.classification_ids:
        cid = (cid or "").strip()
        if cid and cid not in seen:
            seen.add(cid)
            out.append(cid)

    return out
