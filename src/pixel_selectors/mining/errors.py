"""Failure taxonomy for the mining pipeline.

Transient kinds are retried inside the orchestrator under a bounded attempt
budget and never escape it on their own; the rest abort the run. Progress
already written to the cache and ledger is kept either way.
"""

from __future__ import annotations


class MiningError(RuntimeError):
    """Base mining failure with retryability hint."""

    transient = False

    def __init__(self, message: str, *, target_hex: str | None = None) -> None:
        super().__init__(message)
        self.target_hex = target_hex


class WorkerUnavailable(MiningError):
    """Search worker binary is missing or cannot be built or started."""


class InvocationTimeout(MiningError):
    """Single-target worker invocation exceeded its timeout."""

    transient = True


class OutputParseFailure(MiningError):
    """Worker output did not contain a recognizable result."""

    transient = True


class SelectorMismatch(MiningError):
    """Recomputed selector of a candidate disagrees with the target."""

    transient = True


class NameCollision(MiningError):
    """Candidate function name is already assigned in this run."""

    transient = True


class BatchProcessFailure(MiningError):
    """Batch worker exited abnormally; unresolved targets fall back to single mode."""

    transient = True

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        target_hex: str | None = None,
    ) -> None:
        super().__init__(message, target_hex=target_hex)
        self.exit_code = exit_code


class AttemptsExhausted(MiningError):
    """Attempt budget for one target ran out."""

    def __init__(
        self,
        message: str,
        *,
        target_hex: str,
        index: int,
        attempts: int,
    ) -> None:
        super().__init__(message, target_hex=target_hex)
        self.index = index
        self.attempts = attempts


class MiningInterrupted(MiningError):
    """User requested shutdown; no further mining is attempted."""
