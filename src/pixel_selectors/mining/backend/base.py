"""Search worker interface used by the mining orchestrator."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from pixel_selectors.mining.models import BatchSearchRequest, Candidate, SearchRequest


class SelectorSearchService(Protocol):
    """Capability to invert the selector hash for given targets."""

    def prepare(self) -> None:
        """Make the worker ready; raise `WorkerUnavailable` if it cannot be."""

    def search_one(self, request: SearchRequest) -> Candidate | None:
        """Search one target with one prefix; `None` means nothing recognizable was found."""

    def search_batch(self, request: BatchSearchRequest) -> Iterator[Candidate]:
        """Stream candidates for many targets; raise `BatchProcessFailure` on abnormal exit."""
