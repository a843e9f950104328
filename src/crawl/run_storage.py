"""
Local filesystem storage for crawl runs.

Layout (one directory per run):

  <root>/<run_id>/run.json        run info (id, status, startedAt, finishedAt)
  <root>/<run_id>/dataset.jsonl   emitted events, one JSON object per line
  <root>/<run_id>/kv/<KEY>.json   key-value records (CRAWLER_STATE, CONTINUATION_DATA)

LocalRunStorage also serves as a run repository for the import pipeline
(list_runs / fetch_items).
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from ..models import RunInfo

STATUS_RUNNING = "RUNNING"
STATUS_SUCCEEDED = "SUCCEEDED"
STATUS_FAILED = "FAILED"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def new_run_id() -> str:
    return f"{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}-{uuid4().hex[:8]}"


def _write_json(path: str, obj: Any) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


class RunHandle:
    def __init__(self, root: str, run_id: str) -> None:
        self.run_id = run_id
        self.path = os.path.join(root, run_id)

    @property
    def dataset_path(self) -> str:
        return os.path.join(self.path, "dataset.jsonl")

    def _kv_path(self, key: str) -> str:
        return os.path.join(self.path, "kv", f"{key}.json")

    # -- dataset ---------------------------------------------------------

    def push_data(self, items: Iterable[Dict[str, Any]]) -> int:
        n = 0
        with open(self.dataset_path, "a", encoding="utf-8") as f:
            for item in items:
                f.write(json.dumps(item, ensure_ascii=False) + "\n")
                n += 1
        return n

    def read_items(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.dataset_path):
            return []
        out: List[Dict[str, Any]] = []
        with open(self.dataset_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    out.append(json.loads(line))
        return out

    # -- key-value store ---------------------------------------------------

    def set_value(self, key: str, value: Any) -> None:
        os.makedirs(os.path.dirname(self._kv_path(key)), exist_ok=True)
        _write_json(self._kv_path(key), value)

    def get_value(self, key: str) -> Optional[Any]:
        path = self._kv_path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    # -- run info ----------------------------------------------------------

    def read_info(self) -> RunInfo:
        with open(os.path.join(self.path, "run.json"), "r", encoding="utf-8") as f:
            return RunInfo.model_validate(json.load(f))

    def write_info(self, info: RunInfo) -> None:
        _write_json(os.path.join(self.path, "run.json"), info.model_dump(by_alias=True))

    def start(self) -> RunInfo:
        info = RunInfo(id=self.run_id, status=STATUS_RUNNING, started_at=_utc_now_iso())
        self.write_info(info)
        return info

    def finish(self, status: str = STATUS_SUCCEEDED) -> RunInfo:
        info = self.read_info().model_copy(update={"status": status, "finished_at": _utc_now_iso()})
        self.write_info(info)
        return info


class LocalRunStorage:
    def __init__(self, root: str) -> None:
        self.root = root

    def create_run(self, run_id: Optional[str] = None) -> RunHandle:
        run_id = run_id or new_run_id()
        handle = RunHandle(self.root, run_id)
        if os.path.exists(handle.path):
            raise FileExistsError(f"Run directory already exists: {handle.path}")
        os.makedirs(handle.path)
        handle.start()
        return handle

    def get_run(self, run_id: str) -> RunHandle:
        if not run_id:
            raise ValueError("run_id is required")
        handle = RunHandle(self.root, run_id)
        if not os.path.isdir(handle.path):
            raise FileNotFoundError(f"Unknown run: {run_id} (looked in {self.root})")
        return handle

    # -- run repository ----------------------------------------------------

    def list_runs(self, limit: int = 20) -> List[RunInfo]:
        """Most recent first (by startedAt)."""
        if not os.path.isdir(self.root):
            return []
        runs: List[RunInfo] = []
        for name in os.listdir(self.root):
            if not os.path.exists(os.path.join(self.root, name, "run.json")):
                continue
            runs.append(RunHandle(self.root, name).read_info())
        runs.sort(key=lambda r: (r.started_at or "", r.id), reverse=True)
        return runs[:limit]

    def fetch_items(self, run_id: str) -> List[Dict[str, Any]]:
        return self.get_run(run_id).read_items()
