"""Phase 1: filter, identify and upsert one run's scraped items into the capture table."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..storage import build_captured_row
from .filters import rejection_reason
from .identity import derive_identity
from .store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    new: int = 0
    updated: int = 0
    filtered: int = 0
    duplicates: int = 0
    filter_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def captured(self) -> int:
        return self.new + self.updated


def capture_events(
    items: Sequence[Mapping[str, Any]],
    run_id: str,
    store: EventStore,
    *,
    now: Optional[datetime] = None,
) -> CaptureResult:
    """
    Returns counts of new vs updated rows. Replaying the same items is safe:
    the second pass reports 0 new and the same number updated.
    """
    result = CaptureResult()
    reasons: Counter = Counter()

    # identity -> row; later occurrences replace earlier ones
    rows: Dict[str, Dict[str, Any]] = {}
    for item in items:
        reason = rejection_reason(item)
        if reason:
            reasons[reason] += 1
            logger.debug("[capture] REJECT %s: %r", reason, item.get("name"))
            continue
        identity = derive_identity(item)
        if identity in rows:
            result.duplicates += 1
        rows[identity] = build_captured_row(item, identity=identity, run_id=run_id, now=now)

    result.filtered = sum(reasons.values())
    result.filter_reasons = dict(reasons)

    batch: List[Dict[str, Any]] = list(rows.values())
    if batch:
        new_ids = store.upsert_captured_many(batch)
        result.new = len(new_ids)
        result.updated = len(batch) - result.new

    logger.info(
        "[capture] run=%s items=%s new=%s updated=%s filtered=%s duplicates=%s",
        run_id, len(items), result.new, result.updated, result.filtered, result.duplicates,
    )
    return result
