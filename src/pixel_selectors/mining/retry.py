"""Bounded retry policy with pluggable name-prefix strategy."""

from __future__ import annotations

import random
import string
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Protocol

PREFIX_ALPHABET = string.ascii_lowercase + string.digits


class PrefixStrategy(Protocol):
    """Produces the disambiguating name prefix for a given attempt number."""

    def prefix_for(self, attempt: int) -> str:
        """Return prefix to try on `attempt` (0-based)."""


class RandomPrefixStrategy:
    """Deterministic base prefix first, then base + growing random suffix.

    The suffix gains one character every ten attempts, so later retries
    explore a wider namespace.
    """

    def __init__(self, *, base: str = "f", rng: random.Random | None = None) -> None:
        if not base:
            raise ValueError("prefix base must be non-empty")
        self.base = base
        self._random = rng or random.Random()  # noqa: S311

    def prefix_for(self, attempt: int) -> str:
        if attempt == 0:
            return self.base
        length = attempt // 10 + 1
        suffix = "".join(self._random.choice(PREFIX_ALPHABET) for _ in range(length))
        return f"{self.base}{suffix}"


@dataclass(slots=True)
class RetryPolicy:
    """Caps attempts per target; each attempt gets a never-repeated prefix."""

    max_attempts: int = 30
    prefix_strategy: PrefixStrategy = field(default_factory=RandomPrefixStrategy)

    def attempts(self) -> Iterator[tuple[int, str]]:
        """Yield `(attempt, prefix)`; a repeated prefix burns its attempt unused."""

        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        tried: set[str] = set()
        for attempt in range(self.max_attempts):
            prefix = self.prefix_strategy.prefix_for(attempt)
            if prefix in tried:
                continue
            tried.add(prefix)
            yield attempt, prefix
