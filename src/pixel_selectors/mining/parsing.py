"""Parsers for the search worker's line-oriented output protocol."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pixel_selectors.mining.models import Candidate, bare_hex

RESULTS_START_MARKER = "=== RESULTS ==="
RESULTS_END_MARKER = "=== END RESULTS ==="

_FOUND_LINE = re.compile(r"Function found:\s*(\w+)\(")
_RELEVANT_LINE = re.compile(r"(Function found|Error|CUDA error)")
_LEADING_IDENTIFIER = re.compile(r"^[a-zA-Z_]+")


def filter_relevant_lines(output: str) -> str:
    """Keep only result and error lines of combined single-mode output."""

    return "\n".join(line for line in output.splitlines() if _RELEVANT_LINE.search(line))


def parse_found_line(*, output: str, prefix: str, target_hex: str) -> Candidate | None:
    """Extract the candidate announced by a `Function found: name(` line."""

    match = _FOUND_LINE.search(output)
    if match is None:
        return None
    func_name = match.group(1)
    if func_name[0].isdigit():
        func_name = f"{prefix}{func_name}"
    return Candidate(
        selector=bare_hex(target_hex),
        func_name=func_name,
        signature=f"{func_name}()",
        seed=_LEADING_IDENTIFIER.sub("", func_name),
        prefix=prefix,
    )


def parse_result_line(line: str, *, prefix: str = "f") -> Candidate | None:
    """Parse `selectorHex|signature|nonce` from the batch results section."""

    parts = line.strip().split("|")
    if len(parts) != 3:
        return None
    selector_hex, signature, nonce = (part.strip() for part in parts)
    if not signature.endswith("()") or not selector_hex:
        return None
    func_name = signature[:-2]
    seed = func_name[len(prefix) :] if func_name.startswith(prefix) else func_name
    return Candidate(
        selector=bare_hex(selector_hex),
        func_name=func_name,
        signature=signature,
        seed=seed,
        prefix=prefix,
        nonce=nonce,
    )


class SectionState(str, Enum):
    """Position of the batch stream relative to the results frame."""

    OUTSIDE = "outside"
    INSIDE = "inside"


class LineKind(str, Enum):
    MARKER = "marker"
    RESULT = "result"
    MALFORMED = "malformed"
    INFO = "info"
    BLANK = "blank"


@dataclass(slots=True)
class ParsedLine:
    kind: LineKind
    text: str
    candidate: Candidate | None = None


class ResultsSectionParser:
    """Two-state machine over the batch stdout stream.

    Exact marker lines switch between `OUTSIDE` and `INSIDE`; framed lines are
    results, everything else is informational.
    """

    def __init__(self, *, prefix: str = "f") -> None:
        self.prefix = prefix
        self.state = SectionState.OUTSIDE

    def feed(self, raw_line: str) -> ParsedLine:
        text = raw_line.strip()
        if not text:
            return ParsedLine(kind=LineKind.BLANK, text=text)
        if text == RESULTS_START_MARKER:
            self.state = SectionState.INSIDE
            return ParsedLine(kind=LineKind.MARKER, text=text)
        if text == RESULTS_END_MARKER:
            self.state = SectionState.OUTSIDE
            return ParsedLine(kind=LineKind.MARKER, text=text)
        if self.state is SectionState.OUTSIDE:
            return ParsedLine(kind=LineKind.INFO, text=text)

        candidate = parse_result_line(text, prefix=self.prefix)
        if candidate is None:
            return ParsedLine(kind=LineKind.MALFORMED, text=text)
        return ParsedLine(kind=LineKind.RESULT, text=text, candidate=candidate)
