"""
Where completed crawl runs are read from.

LocalRunStorage (crawl.run_storage) reads the local runs directory;
ApifyRunRepository reads runs of a deployed actor through the Apify API.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from ..models import RunInfo

logger = logging.getLogger(__name__)

APIFY_API_BASE = "https://api.apify.com/v2"


class RunRepository(Protocol):
    def list_runs(self, limit: int = 20) -> List[RunInfo]:
        """Most recent first."""
        ...

    def fetch_items(self, run_id: str) -> List[Dict[str, Any]]: ...


class ApifyRunRepository:
    def __init__(
        self,
        token: str,
        actor_id: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        base_url: str = APIFY_API_BASE,
    ) -> None:
        if not token or not actor_id:
            raise ValueError("Apify token and actor id are required")
        self.token = token
        # "user/actor-name" is addressed as "user~actor-name" in API paths
        self.actor_id = actor_id.replace("/", "~")
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("[apify] GET %s", url)
        r = self.session.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout_s,
        )
        r.raise_for_status()
        return r.json()

    def list_runs(self, limit: int = 20) -> List[RunInfo]:
        payload = self._get(f"/acts/{self.actor_id}/runs", {"limit": limit, "desc": 1})
        items = ((payload or {}).get("data") or {}).get("items") or []
        return [RunInfo.model_validate(it) for it in items]

    def fetch_items(self, run_id: str) -> List[Dict[str, Any]]:
        if not run_id:
            raise ValueError("run_id is required")
        run = (self._get(f"/actor-runs/{run_id}") or {}).get("data") or {}
        dataset_id = run.get("defaultDatasetId")
        if not dataset_id:
            raise RuntimeError(f"No dataset found for run {run_id}")
        items = self._get(f"/datasets/{dataset_id}/items", {"format": "json", "clean": "true"})
        if not isinstance(items, list):
            raise RuntimeError(f"Unexpected dataset payload for run {run_id}: {type(items).__name__}")
        logger.info("[apify] run=%s dataset=%s items=%s", run_id, dataset_id, len(items))
        return items
