from __future__ import annotations

import json
import logging
from pathlib import Path

import allure
import pytest

from pixel_selectors.mining.cache import SelectorCache
from pixel_selectors.mining.ledger import ProgressLedger
from pixel_selectors.mining.models import FunctionRecord
from pixel_selectors.storage import write_json

pytestmark = [
    allure.epic("Selector Mining"),
    allure.feature("Cache & Progress Persistence"),
]


def _record(index: int, selector: str, name: str) -> FunctionRecord:
    return FunctionRecord(
        index=index,
        selector=selector,
        func_name=name,
        signature=f"{name}()",
        seed=name[1:],
        prefix="f",
    )


def test_cache_upsert_writes_through_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "mined-selectors-db.json"
    cache = SelectorCache(path)
    cache.load()

    cache.upsert("0xAABBCC00", _record(0, "aabbcc00", "f12"))

    payload = json.loads(path.read_text("utf-8"))
    assert payload["totalSelectors"] == 1
    assert payload["timestamp"].endswith("Z")
    assert payload["selectors"]["aabbcc00"]["funcName"] == "f12"
    assert payload["selectors"]["aabbcc00"]["minedAt"].endswith("Z")

    reloaded = SelectorCache(path).load()
    assert reloaded["aabbcc00"].signature == "f12()"
    assert reloaded["aabbcc00"].to_record(selector="aabbcc00", index=3).index == 3


def test_cache_load_accepts_prefixed_keys(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    write_json(
        path,
        {
            "selectors": {
                "0xAABBCC00": {"funcName": "f1", "signature": "f1()", "seed": "1", "prefix": "f"},
            },
        },
    )

    entries = SelectorCache(path).load()

    assert list(entries) == ["aabbcc00"]
    assert entries["aabbcc00"].mined_at == ""


def test_cache_merge_overlays_without_dropping_entries(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    cache = SelectorCache(path)
    cache.upsert("aabbcc00", _record(0, "aabbcc00", "f1"))
    cache.upsert("ddeeff01", _record(1, "ddeeff01", "f2"))

    merged = cache.merge([_record(0, "aabbcc00", "f9"), _record(2, "11223302", "f3")])

    assert merged == 2
    entries = SelectorCache(path).load()
    assert sorted(entries) == ["11223302", "aabbcc00", "ddeeff01"]
    assert entries["aabbcc00"].func_name == "f9"
    assert entries["ddeeff01"].func_name == "f2"


def test_missing_cache_loads_empty(tmp_path: Path) -> None:
    cache = SelectorCache(tmp_path / "absent.json")

    assert cache.load() == {}
    assert len(cache) == 0


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[]",
        '{"selectors": []}',
    ],
)
def test_corrupt_cache_loads_empty_and_is_copied_aside(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
    content: str,
) -> None:
    path = tmp_path / "cache.json"
    path.write_text(content, "utf-8")

    with caplog.at_level(logging.WARNING):
        cache = SelectorCache(path)
        entries = cache.load()

    assert entries == {}
    assert "Could not load selectors cache" in caplog.text
    corrupt = tmp_path / "cache.json.corrupt"
    assert corrupt.read_text("utf-8") == content

    cache.upsert("aabbcc00", _record(0, "aabbcc00", "f1"))

    assert corrupt.read_text("utf-8") == content


def test_unreadable_cache_entry_is_skipped_and_others_survive_upsert(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    path = tmp_path / "cache.json"
    selectors = {
        f"{n:08x}": {"funcName": f"f{n}", "signature": f"f{n}()", "seed": str(n), "prefix": "f"}
        for n in range(50)
    }
    selectors["aabbcc00"] = {"signature": "f1()"}
    selectors["aabbcc01"] = "f2()"
    write_json(path, {"selectors": selectors})

    with caplog.at_level(logging.WARNING):
        cache = SelectorCache(path)
        entries = cache.load()

    assert len(entries) == 50
    assert "Skipping unreadable cache entry aabbcc00" in caplog.text
    assert "Skipping unreadable cache entry aabbcc01" in caplog.text
    assert not (tmp_path / "cache.json.corrupt").exists()

    cache.upsert("cafebabe", _record(0, "cafebabe", "f99"))

    on_disk = json.loads(path.read_text("utf-8"))
    assert on_disk["totalSelectors"] == 51
    assert on_disk["selectors"]["00000031"]["funcName"] == "f49"
    assert on_disk["selectors"]["cafebabe"]["funcName"] == "f99"


def test_failed_write_keeps_previous_file(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    write_json(path, {"value": 1})

    with pytest.raises(TypeError):
        write_json(path, {"value": object()})

    assert json.loads(path.read_text("utf-8")) == {"value": 1}
    assert [item.name for item in tmp_path.iterdir()] == ["cache.json"]


def test_ledger_save_and_load_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "selector-mining-progress.json"
    ledger = ProgressLedger(path)
    records = [_record(0, "aabbcc00", "f1")]

    saved = ledger.save(["aabbcc00", "ddeeff01"], records)

    payload = json.loads(path.read_text("utf-8"))
    assert payload["selectorsData"] == ["aabbcc00", "ddeeff01"]
    assert payload["completed"] == 1
    assert payload["total"] == 2
    assert payload["functions"][0]["funcName"] == "f1"
    assert payload["functions"][0]["hasParam"] is False

    loaded = ledger.load()
    assert loaded is not None
    assert loaded.functions == saved.functions
    assert loaded.completed == 1
    assert loaded.total == 2


def test_ledger_load_returns_none_for_missing_or_corrupt_file(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    path = tmp_path / "progress.json"
    ledger = ProgressLedger(path)
    assert ledger.load() is None

    path.write_text('{"functions": [{"index": 0}]}', "utf-8")
    with caplog.at_level(logging.WARNING):
        assert ledger.load() is None
    assert "Could not load progress file" in caplog.text
