"""Cross-run selector cache persisted as one JSON document."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from pixel_selectors.mining.models import CacheEntry, FunctionRecord, bare_hex
from pixel_selectors.storage import isoformat_z, load_json, utc_now, write_json

logger = logging.getLogger(__name__)


class SelectorCache:
    """Append/overwrite-only store of mined selectors.

    The cache is an optimization: a missing or unparseable file loads as empty
    and only produces a warning; unreadable entries are skipped one by one.
    Every `upsert` rewrites the whole file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.entries: dict[str, CacheEntry] = {}

    def load(self) -> dict[str, CacheEntry]:
        self.entries = {}
        if not self.path.exists():
            return self.entries
        try:
            raw = load_json(self.path)
            selectors = raw.get("selectors", {})
            if not isinstance(selectors, dict):
                raise TypeError("selectors must be an object")
        except (OSError, ValueError, TypeError) as error:
            logger.warning("Could not load selectors cache %s: %s", self.path, error)
            self._set_aside()
            return self.entries

        for selector_hex, payload in selectors.items():
            try:
                self.entries[bare_hex(str(selector_hex))] = CacheEntry.from_json(payload)
            except (ValueError, TypeError, KeyError, AttributeError) as error:
                logger.warning("Skipping unreadable cache entry %s: %r", selector_hex, error)

        logger.info(
            "Loaded selectors cache: %d mined selectors (last updated %s)",
            len(self.entries),
            raw.get("timestamp", "unknown"),
        )
        return self.entries

    def _set_aside(self) -> None:
        """Copy an unparseable cache file next to itself before it gets overwritten."""

        corrupt_path = self.path.with_name(self.path.name + ".corrupt")
        try:
            shutil.copyfile(self.path, corrupt_path)
        except OSError as error:
            logger.warning("Could not copy unreadable cache to %s: %s", corrupt_path, error)
            return
        logger.warning("Unreadable cache copied to %s", corrupt_path)

    def save(self, entries: dict[str, CacheEntry] | None = None) -> None:
        if entries is not None:
            self.entries = dict(entries)
        write_json(
            self.path,
            {
                "timestamp": isoformat_z(utc_now()),
                "totalSelectors": len(self.entries),
                "selectors": {key: entry.to_json() for key, entry in self.entries.items()},
            },
        )

    def upsert(self, selector_hex: str, record: FunctionRecord) -> CacheEntry:
        """Merge one mined record and persist immediately."""

        entry = CacheEntry.from_record(record, mined_at=isoformat_z(utc_now()))
        self.entries[bare_hex(selector_hex)] = entry
        self.save()
        return entry

    def merge(self, records: Iterable[FunctionRecord]) -> int:
        """Overlay `records` on the stored entries and persist once.

        Incoming records win on conflict; existing entries are never dropped.
        """

        mined_at = isoformat_z(utc_now())
        merged = 0
        for record in records:
            self.entries[bare_hex(record.selector)] = CacheEntry.from_record(record, mined_at=mined_at)
            merged += 1
        if merged:
            self.save()
        return merged

    def __len__(self) -> int:
        return len(self.entries)

