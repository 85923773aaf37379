"""Domain models for selector mining, caching and progress tracking."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class FunctionRecord:
    """Resolved function whose selector equals the pixel target."""

    index: int
    selector: str
    func_name: str
    signature: str
    seed: str
    prefix: str
    params: str = ""
    has_param: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "selector": self.selector,
            "funcName": self.func_name,
            "signature": self.signature,
            "params": self.params,
            "hasParam": self.has_param,
            "seed": self.seed,
            "prefix": self.prefix,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> FunctionRecord:
        return cls(
            index=int(raw.get("index", 0)),
            selector=bare_hex(str(raw["selector"])),
            func_name=str(raw["funcName"]),
            signature=str(raw["signature"]),
            seed=str(raw.get("seed", "")),
            prefix=str(raw.get("prefix") or "f"),
            params=str(raw.get("params") or ""),
            has_param=bool(raw.get("hasParam", False)),
        )


@dataclass(slots=True)
class CacheEntry:
    """Persisted mining result keyed by selector hex in the cross-run cache."""

    func_name: str
    signature: str
    seed: str
    prefix: str
    mined_at: str
    params: str = ""
    has_param: bool = False

    @classmethod
    def from_record(cls, record: FunctionRecord, *, mined_at: str) -> CacheEntry:
        return cls(
            func_name=record.func_name,
            signature=record.signature,
            seed=record.seed,
            prefix=record.prefix or "f",
            mined_at=mined_at,
            params=record.params,
            has_param=record.has_param,
        )

    def to_record(self, *, selector: str, index: int = 0) -> FunctionRecord:
        return FunctionRecord(
            index=index,
            selector=selector,
            func_name=self.func_name,
            signature=self.signature,
            seed=self.seed,
            prefix=self.prefix,
            params=self.params,
            has_param=self.has_param,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "funcName": self.func_name,
            "signature": self.signature,
            "params": self.params,
            "hasParam": self.has_param,
            "seed": self.seed,
            "prefix": self.prefix,
            "minedAt": self.mined_at,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> CacheEntry:
        return cls(
            func_name=str(raw["funcName"]),
            signature=str(raw["signature"]),
            seed=str(raw.get("seed", "")),
            prefix=str(raw.get("prefix") or "f"),
            mined_at=str(raw.get("minedAt", "")),
            params=str(raw.get("params") or ""),
            has_param=bool(raw.get("hasParam", False)),
        )


@dataclass(slots=True)
class ProgressSnapshot:
    """One in-flight generation run, possibly partial."""

    timestamp: str
    selectors_data: list[str]
    functions: list[FunctionRecord]
    completed: int
    total: int

    def to_json(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "selectorsData": list(self.selectors_data),
            "completed": self.completed,
            "total": self.total,
            "functions": [record.to_json() for record in self.functions],
        }


@dataclass(slots=True)
class Candidate:
    """Name proposed by the search worker for one target selector."""

    selector: str
    func_name: str
    signature: str
    seed: str
    prefix: str
    nonce: str | None = None


@dataclass(slots=True)
class SearchRequest:
    """Inputs for one single-target worker invocation."""

    target_hex: str
    prefix: str
    timeout_seconds: int
    signature_placeholder: str = "()"
    shutdown_requested: Callable[[], bool] | None = None


@dataclass(slots=True)
class BatchSearchRequest:
    """Inputs for one batch worker invocation."""

    target_hexes: list[str]
    shutdown_requested: Callable[[], bool] | None = None


def bare_hex(value: str) -> str:
    text = value.strip().lower()
    return text[2:] if text.startswith("0x") else text
