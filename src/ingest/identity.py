# src/ingest/identity.py
"""
Capture identity contract for public.events.

=== CONTRACT ===

  PRIMARY PATH (native id):
    id = "tm_<native id>"

  FALLBACK (composite):
    id = "event_<name>_<venue>_<date>"[:100]

      name   lower-cased, every non [a-z0-9] char replaced by "_", first 50 chars
      venue  venueName (or "unknown_venue"), same normalization, first 30 chars
      date   calendar part of localDate with "-" replaced by "_", else "no_date"

  The same scraped event seen by two runs produces the same id, so the
  upsert ON CONFLICT (id) refreshes the row instead of duplicating it.

  Changing this function changes every fallback id: rows already captured
  under the old rule would be captured again.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

NAME_MAX = 50
VENUE_MAX = 30
ID_MAX = 100


def _slug(value: Any, limit: int) -> str:
    return _NON_ALNUM_RE.sub("_", str(value or "").lower())[:limit]


def derive_identity(item: Mapping[str, Any]) -> str:
    native_id = item.get("id")
    if native_id:
        return f"tm_{native_id}"

    name = _slug(item.get("name"), NAME_MAX)
    venue = _slug(item.get("venueName") or "unknown_venue", VENUE_MAX)

    local_date = str(item.get("localDate") or "")[:10]
    date_part = local_date.replace("-", "_") if local_date else "no_date"

    return f"event_{name}_{venue}_{date_part}"[:ID_MAX]
