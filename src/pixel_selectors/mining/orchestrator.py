"""Control loop that resolves every pixel target to a mined function name."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Iterator, Sequence
from contextlib import closing, contextmanager
from dataclasses import dataclass, field, replace

from pixel_selectors.mining.backend.base import SelectorSearchService
from pixel_selectors.mining.cache import SelectorCache
from pixel_selectors.mining.errors import (
    AttemptsExhausted,
    BatchProcessFailure,
    MiningError,
    MiningInterrupted,
    NameCollision,
    OutputParseFailure,
    SelectorMismatch,
)
from pixel_selectors.mining.ledger import ProgressLedger
from pixel_selectors.mining.models import (
    BatchSearchRequest,
    Candidate,
    FunctionRecord,
    SearchRequest,
)
from pixel_selectors.mining.retry import RetryPolicy
from pixel_selectors.selectors import PixelSelector, function_selector

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MiningSummary:
    """Aggregate counters for CLI reporting."""

    total: int = 0
    reused: int = 0
    mined_batch: int = 0
    mined_single: int = 0
    rejected_batch: int = 0
    mode: str = "none"


@dataclass(slots=True)
class MiningResult:
    records: list[FunctionRecord]
    summary: MiningSummary


@dataclass(slots=True)
class _RunState:
    targets: list[PixelSelector]
    functions: list[FunctionRecord | None]
    used_names: set[str] = field(default_factory=set)

    @property
    def target_hexes(self) -> list[str]:
        return [target.hex for target in self.targets]

    def completed(self) -> list[FunctionRecord]:
        return [record for record in self.functions if record is not None]


class MiningOrchestrator:
    """Reconciles cache, ledger and targets, then mines whatever is missing.

    Strictly sequential: at most one worker invocation is in flight. Every
    accepted result is written to the cache and the ledger before the next
    invocation starts, so an interrupted run resumes with no repeated work.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        search: SelectorSearchService,
        cache: SelectorCache,
        ledger: ProgressLedger,
        retry_policy: RetryPolicy | None = None,
        batch_threshold: int = 10,
        timeout_seconds: int = 300,
        signature_placeholder: str = "()",
        handle_signals: bool = True,
    ) -> None:
        self.search = search
        self.cache = cache
        self.ledger = ledger
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_threshold = batch_threshold
        self.timeout_seconds = timeout_seconds
        self.signature_placeholder = signature_placeholder
        self.handle_signals = handle_signals
        self._stop_requested = False
        self._stop_signal_name: str | None = None
        self._summary = MiningSummary()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, *, signal_name: str = "manual") -> None:
        self._stop_requested = True
        self._stop_signal_name = signal_name
        logger.warning("Interrupted by %s; stopping after the current step.", signal_name)

    def resolve_all(self, targets: Sequence[PixelSelector]) -> MiningResult:
        """Return one `FunctionRecord` per target, in target order."""

        self._summary = MiningSummary(total=len(targets))
        if self.handle_signals:
            with self._signal_handlers():
                records = self._resolve_all(list(targets))
        else:
            records = self._resolve_all(list(targets))
        return MiningResult(records=records, summary=self._summary)

    def _resolve_all(self, targets: list[PixelSelector]) -> list[FunctionRecord]:
        run = _RunState(targets=targets, functions=[None] * len(targets))
        selector_map = self._build_selector_map(total=len(targets))
        pending = self._reuse_known(run, selector_map)

        logger.info("Reused %d existing selectors", self._summary.reused)
        logger.info("Need to mine %d new selectors", len(pending))
        if not pending:
            logger.info("All selectors already exist! No mining needed.")
            return run.completed()

        self.search.prepare()
        self.ledger.save(run.target_hexes, run.completed())

        if len(pending) >= self.batch_threshold:
            self._summary.mode = "batch"
            unresolved = self._mine_batch(run, pending)
        else:
            self._summary.mode = "single"
            unresolved = pending

        for position, index in enumerate(unresolved, start=1):
            self._mine_single(run, index, position=position, total=len(unresolved))
        return run.completed()

    def _build_selector_map(self, *, total: int) -> dict[str, FunctionRecord]:
        cached = self.cache.load()
        selector_map = {
            selector_hex: entry.to_record(selector=selector_hex)
            for selector_hex, entry in cached.items()
        }
        snapshot = self.ledger.load()
        if snapshot is not None:
            if snapshot.total != total:
                logger.warning(
                    "Progress file tracks %d selectors but current image has %d; "
                    "reconciling by selector value",
                    snapshot.total,
                    total,
                )
            for record in snapshot.functions:
                selector_map[record.selector] = record
            logger.info(
                "Loaded %d existing function mappings (%d from cache)",
                len(selector_map),
                len(cached),
            )
        elif cached:
            logger.info("Loaded %d function mappings from cache", len(selector_map))
        return selector_map

    def _reuse_known(
        self,
        run: _RunState,
        selector_map: dict[str, FunctionRecord],
    ) -> list[int]:
        pending: list[int] = []
        backfill: list[FunctionRecord] = []
        for position, target in enumerate(run.targets):
            known = selector_map.get(target.hex)
            if known is None:
                pending.append(position)
                continue
            if function_selector(known.signature) != target.value_bytes:
                logger.warning(
                    "Stored entry %s does not hash to 0x%s; mining it again",
                    known.signature,
                    target.hex,
                )
                pending.append(position)
                continue
            if known.func_name in run.used_names:
                pending.append(position)
                continue
            record = replace(known, index=position, selector=target.hex)
            run.functions[position] = record
            run.used_names.add(record.func_name)
            self._summary.reused += 1
            if target.hex not in self.cache.entries:
                backfill.append(record)

        if backfill:
            self.cache.merge(backfill)
            logger.info("Restored %d ledger entries into the cache", len(backfill))
        return pending

    def _mine_batch(self, run: _RunState, pending: list[int]) -> list[int]:
        logger.info("Mining function signatures using batch mode...")
        by_hex = {run.targets[index].hex: index for index in pending}
        resolved: set[int] = set()
        request = BatchSearchRequest(
            target_hexes=[run.targets[index].hex for index in pending],
            shutdown_requested=lambda: self._stop_requested,
        )
        try:
            with closing(self.search.search_batch(request)) as stream:
                for candidate in stream:
                    index = by_hex.get(candidate.selector)
                    if index is None:
                        logger.warning(
                            "Ignoring batch result for unrequested selector 0x%s",
                            candidate.selector,
                        )
                        continue
                    if index in resolved:
                        continue
                    try:
                        record = self._accept(run, index, candidate)
                    except (SelectorMismatch, NameCollision, OutputParseFailure) as error:
                        logger.warning("Rejected batch result for 0x%s: %s", candidate.selector, error)
                        self._summary.rejected_batch += 1
                        continue
                    self._commit(run, index, record)
                    resolved.add(index)
                    self._summary.mined_batch += 1
        except BatchProcessFailure as error:
            logger.warning("Batch mining failed: %s", error)

        unresolved = [index for index in pending if index not in resolved]
        if unresolved:
            logger.warning(
                "%d selectors not found in batch mode, falling back to single mining...",
                len(unresolved),
            )
        return unresolved

    def _mine_single(self, run: _RunState, index: int, *, position: int, total: int) -> FunctionRecord:
        target = run.targets[index]
        logger.info("[%d/%d] Mining selector %d: 0x%s", position, total, index + 1, target.hex)
        last_error: MiningError | None = None

        for attempt, prefix in self.retry_policy.attempts():
            self._raise_if_stopped(target)
            if attempt > 0:
                logger.warning("Retrying 0x%s with prefix %r", target.hex, prefix)
            started = time.monotonic()
            try:
                candidate = self.search.search_one(
                    SearchRequest(
                        target_hex=target.hex,
                        prefix=prefix,
                        timeout_seconds=self.timeout_seconds,
                        signature_placeholder=self.signature_placeholder,
                        shutdown_requested=lambda: self._stop_requested,
                    ),
                )
                if candidate is None:
                    raise OutputParseFailure(
                        "Miner output did not contain valid function signature",
                        target_hex=target.hex,
                    )
                record = self._accept(run, index, candidate)
            except MiningError as error:
                if not error.transient:
                    raise
                logger.warning("Attempt %d for 0x%s failed: %s", attempt + 1, target.hex, error)
                last_error = error
                continue

            self._commit(run, index, record)
            self._summary.mined_single += 1
            prefix_info = "" if attempt == 0 else f" (prefix: {prefix})"
            logger.info(
                "Found: %s (%.2fs)%s",
                record.signature,
                time.monotonic() - started,
                prefix_info,
            )
            return record

        detail = f": {last_error}" if last_error is not None else ""
        raise AttemptsExhausted(
            f"Could not find unique function name for selector 0x{target.hex} (pixel {index + 1}) "
            f"after {self.retry_policy.max_attempts} attempts with different prefixes{detail}",
            target_hex=target.hex,
            index=index,
            attempts=self.retry_policy.max_attempts,
        )

    def _accept(self, run: _RunState, index: int, candidate: Candidate) -> FunctionRecord:
        target = run.targets[index]
        if not candidate.func_name.isidentifier():
            raise OutputParseFailure(
                f"Invalid function name {candidate.func_name!r}",
                target_hex=target.hex,
            )
        actual = function_selector(candidate.signature)
        if actual != target.value_bytes:
            raise SelectorMismatch(
                f"Selector mismatch! Expected 0x{target.hex}, got 0x{actual.hex()}",
                target_hex=target.hex,
            )
        if candidate.func_name in run.used_names:
            raise NameCollision(
                f"Duplicate function name {candidate.func_name!r}",
                target_hex=target.hex,
            )
        return FunctionRecord(
            index=index,
            selector=target.hex,
            func_name=candidate.func_name,
            signature=candidate.signature,
            seed=candidate.seed,
            prefix=candidate.prefix,
        )

    def _commit(self, run: _RunState, index: int, record: FunctionRecord) -> None:
        run.functions[index] = record
        run.used_names.add(record.func_name)
        self.cache.upsert(record.selector, record)
        self.ledger.save(run.target_hexes, run.completed())

    def _raise_if_stopped(self, target: PixelSelector) -> None:
        if self._stop_requested:
            raise MiningInterrupted(
                f"Mining interrupted by {self._stop_signal_name or 'user'}",
                target_hex=target.hex,
            )

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
