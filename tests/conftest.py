"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from helpers import local_miner_command

_PATH_VARIABLES = (
    "PIXEL_SELECTORS_PIXELS_PATH",
    "PIXEL_SELECTORS_PROGRESS_PATH",
    "PIXEL_SELECTORS_CACHE_PATH",
    "PIXEL_SELECTORS_METADATA_PATH",
    "PIXEL_SELECTORS_SVG_PATH",
    "PIXEL_SELECTORS_AUTHORIZED_ADDRESS",
    "PIXEL_SELECTORS_MINER_BATCH_THRESHOLD",
    "PIXEL_SELECTORS_MINER_MAX_ATTEMPTS",
    "PIXEL_SELECTORS_MINER_TIMEOUT_SECONDS",
    "PIXEL_SELECTORS_INITIAL_PREFIX",
)


@pytest.fixture()
def isolated_env(tmp_path, monkeypatch):
    """Point every configurable path into `tmp_path` and use the local miner."""

    for name in _PATH_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    data_dir = tmp_path / "data"
    monkeypatch.setenv("PIXEL_SELECTORS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("PIXEL_SELECTORS_CONTRACT_PATH", str(tmp_path / "out" / "PUSH4.sol"))
    monkeypatch.setenv(
        "PIXEL_SELECTORS_PROXY_CONTRACT_PATH",
        str(tmp_path / "out" / "PUSH4ProxyTemplate.sol"),
    )
    monkeypatch.setenv("PIXEL_SELECTORS_MINER_DIR", str(tmp_path / "miner"))
    monkeypatch.setenv("PIXEL_SELECTORS_MINER_COMMAND", local_miner_command())
    return data_dir


@pytest.fixture(autouse=True)
def _subprocess_import_path(monkeypatch):
    """Let `python -m pixel_selectors...` workers import the package from `src`."""

    src_dir = str(Path(__file__).resolve().parents[1] / "src")
    existing = os.environ.get("PYTHONPATH")
    monkeypatch.setenv("PYTHONPATH", src_dir if not existing else f"{src_dir}{os.pathsep}{existing}")
