# tests/test_pipeline_summary.py
"""
Verify the [crawl][summary] line is emitted at the end of a crawl run.
"""
from __future__ import annotations

import json
import re
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_page, make_search_item

from src.crawl.continuation import CONTINUATION_KEY
from src.crawl.run_storage import LocalRunStorage


def _http_result(payload):
    result = MagicMock()
    result.json = payload
    return result


def _single_page(n: int = 3):
    return _http_result(make_page(0, 1, n, [make_search_item(i) for i in range(n)]))


def test_summary_line_present(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    """The [crawl][summary] line must appear exactly once."""
    with patch("src.pipeline.http_get_json", return_value=_single_page()):
        from src.pipeline import main
        code = main(["--runs-dir", str(tmp_path), "--run-id", "run-a"])

    assert code == 0
    out = capsys.readouterr().out
    lines = [l for l in out.splitlines() if l.startswith("[crawl][summary]")]
    assert len(lines) == 1
    line = lines[0]
    assert "run_id=run-a" in line
    assert "outcome=exhausted" in line
    assert "total_scraped=3" in line
    assert re.search(r"pages=1\b", line)


def test_continue_from_reads_previous_handoff(tmp_path, capsys) -> None:
    storage = LocalRunStorage(str(tmp_path))
    prev = storage.create_run("run-1")
    prev.set_value(CONTINUATION_KEY, {
        "continuationStartDate": "2025-11-25T19:30:00",
        "totalEventsScraped": 1200,
        "originalDateFrom": "2025-11-01",
        "originalDateTo": None,
        "runNumber": 1,
    })
    input_path = tmp_path / "input.json"
    input_path.write_text(json.dumps({"dateFrom": "2025-11-01", "sortBy": "date"}), encoding="utf-8")

    fetch = MagicMock(return_value=_single_page())
    with patch("src.pipeline.http_get_json", fetch):
        from src.pipeline import main
        main([
            "--runs-dir", str(tmp_path), "--run-id", "run-2",
            "--input", str(input_path), "--continue-from", "run-1",
        ])

    url = fetch.call_args[0][0]
    assert "2025-11-25T00%3A00%3A00" in url
    assert "run_number=1" in capsys.readouterr().out


def test_continue_from_run_without_handoff_fails(tmp_path) -> None:
    LocalRunStorage(str(tmp_path)).create_run("run-1")
    from src.pipeline import main
    with pytest.raises(ValueError):
        main(["--runs-dir", str(tmp_path), "--continue-from", "run-1"])
