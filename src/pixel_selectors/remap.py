"""Row remap engine: rank selectors by numeric value within each column."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from pixel_selectors.selectors import PixelDataError, normalize_selector_hex


@dataclass(frozen=True, slots=True)
class RemapEntry:
    """One known selector and the row the renderer will assign to it."""

    column: int
    value: int
    source_row: int
    render_row: int

    @property
    def color_key(self) -> int:
        """Selector without its column byte: `(r << 16) | (g << 8) | b`."""

        return self.value >> 8


def rank_column(column: int, values_by_row: Sequence[tuple[int, int]]) -> list[RemapEntry]:
    """Assign `render_row` as the zero-based rank of each `(source_row, value)` by value."""

    values = [value for _, value in values_by_row]
    if len(set(values)) != len(values):
        raise PixelDataError(f"Column {column} contains duplicate selector values")
    ordered = sorted(values_by_row, key=lambda item: item[1])
    return [
        RemapEntry(column=column, value=value, source_row=source_row, render_row=render_row)
        for render_row, (source_row, value) in enumerate(ordered)
    ]


def compute_remap(selectors: Sequence[str], width: int) -> dict[int, list[RemapEntry]]:
    """Group a row-major selector table by column byte and rank each column.

    Returns entries per column ordered by `render_row`.
    """

    if width <= 0:
        raise PixelDataError("width must be positive")
    grouped: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for position, selector in enumerate(selectors):
        value = int(normalize_selector_hex(selector), 16)
        grouped[value & 0xFF].append((position // width, value))
    return {column: rank_column(column, grouped[column]) for column in sorted(grouped)}


def render_row_lookup(remap: dict[int, list[RemapEntry]]) -> dict[int, int]:
    """Flatten a remap into `selector value -> render_row`."""

    return {entry.value: entry.render_row for entries in remap.values() for entry in entries}
