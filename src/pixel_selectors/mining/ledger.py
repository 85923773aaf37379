"""Per-run progress ledger enabling interruption and resume."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pixel_selectors.mining.models import FunctionRecord, ProgressSnapshot
from pixel_selectors.storage import isoformat_z, load_json, utc_now, write_json

logger = logging.getLogger(__name__)


class ProgressLedger:
    """Snapshot of resolved and pending targets for the current run.

    Writes go through a temp file and rename, so an interrupted save leaves the
    previous snapshot intact. Deleting the file is safe.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, targets: Sequence[str], completed: Sequence[FunctionRecord]) -> ProgressSnapshot:
        snapshot = ProgressSnapshot(
            timestamp=isoformat_z(utc_now()),
            selectors_data=list(targets),
            functions=list(completed),
            completed=len(completed),
            total=len(targets),
        )
        write_json(self.path, snapshot.to_json())
        return snapshot

    def load(self) -> ProgressSnapshot | None:
        if not self.path.exists():
            return None
        try:
            raw = load_json(self.path)
            selectors_data = raw.get("selectorsData") or []
            functions_raw = raw.get("functions") or []
            if not isinstance(selectors_data, list) or not isinstance(functions_raw, list):
                raise TypeError("selectorsData and functions must be arrays")
            functions = [FunctionRecord.from_json(item) for item in functions_raw]
            snapshot = ProgressSnapshot(
                timestamp=str(raw.get("timestamp", "")),
                selectors_data=[str(item) for item in selectors_data],
                functions=functions,
                completed=int(raw.get("completed", len(functions))),
                total=int(raw.get("total", len(selectors_data))),
            )
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as error:
            logger.warning("Could not load progress file %s: %s", self.path, error)
            return None

        logger.info(
            "Found existing progress: %d/%d selectors (last updated %s)",
            snapshot.completed,
            snapshot.total,
            snapshot.timestamp,
        )
        return snapshot
