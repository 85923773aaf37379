"""Test doubles and builders for mining tests."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

from pixel_selectors.mining.errors import BatchProcessFailure, MiningError
from pixel_selectors.mining.models import BatchSearchRequest, Candidate, SearchRequest
from pixel_selectors.selectors import PixelGrid, function_selector

LOCAL_MINER_MODULE = "pixel_selectors.mining.backend.local_miner"


def local_miner_command(*, max_nonce: int = 2_000) -> str:
    return f"{shlex.quote(sys.executable)} -m {LOCAL_MINER_MODULE} --max-nonce {max_nonce}"


def failing_worker_command(*, exit_code: int, max_nonce: int = 2_000) -> str:
    """Local miner command whose batch run ends with `exit_code`."""

    script = Path(__file__).with_name("failing_worker.py")
    return (
        f"{shlex.quote(sys.executable)} {shlex.quote(str(script))} {exit_code} --max-nonce {max_nonce}"
    )


def selector_hex_for(name: str) -> str:
    return function_selector(f"{name}()").hex()


def mineable_grid(width: int, height: int, *, start: int = 0) -> PixelGrid:
    """Grid whose pixel `n` is the selector of `f<start + n>()`."""

    return PixelGrid(
        width=width,
        height=height,
        pixels=[selector_hex_for(f"f{start + n}") for n in range(width * height)],
    )


class FakeSearch:
    """In-process search service answering from a `selector -> name` table.

    `single_script` maps a target hex to a list of per-call outcomes: a name
    (returned as candidate), `None` (nothing found) or an exception to raise.
    Once a script runs out, the table answer is used.
    """

    def __init__(
        self,
        table: dict[str, str] | None = None,
        *,
        single_script: dict[str, list[object]] | None = None,
        batch_extra: list[Candidate] | None = None,
        batch_skip: set[str] | None = None,
        batch_failure: BatchProcessFailure | None = None,
        on_single: Callable[[SearchRequest], None] | None = None,
    ) -> None:
        self.table = dict(table or {})
        self.single_script = {key: list(value) for key, value in (single_script or {}).items()}
        self.batch_extra = list(batch_extra or [])
        self.batch_skip = set(batch_skip or ())
        self.batch_failure = batch_failure
        self.on_single = on_single
        self.prepared = 0
        self.single_calls: list[SearchRequest] = []
        self.batch_calls: list[BatchSearchRequest] = []

    def prepare(self) -> None:
        self.prepared += 1

    def search_one(self, request: SearchRequest) -> Candidate | None:
        self.single_calls.append(request)
        if self.on_single is not None:
            self.on_single(request)
        script = self.single_script.get(request.target_hex)
        if script:
            outcome = script.pop(0)
            if isinstance(outcome, MiningError):
                raise outcome
            if outcome is None:
                return None
            return _candidate(request.target_hex, str(outcome), request.prefix)
        name = self.table.get(request.target_hex)
        if name is None:
            return None
        return _candidate(request.target_hex, name, request.prefix)

    def search_batch(self, request: BatchSearchRequest) -> Iterator[Candidate]:
        self.batch_calls.append(request)
        yield from self.batch_extra
        for target_hex in request.target_hexes:
            if target_hex in self.batch_skip:
                continue
            name = self.table.get(target_hex)
            if name is not None:
                yield _candidate(target_hex, name, "f")
        if self.batch_failure is not None:
            raise self.batch_failure


def _candidate(target_hex: str, name: str, prefix: str) -> Candidate:
    return Candidate(
        selector=target_hex,
        func_name=name,
        signature=f"{name}()",
        seed=name[len(prefix) :] if name.startswith(prefix) else name,
        prefix=prefix,
    )


