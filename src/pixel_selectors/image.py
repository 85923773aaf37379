"""Synthesis of the demo "zip" image and its SVG preview."""

from __future__ import annotations

import random

from pixel_selectors.selectors import PixelDataError, PixelGrid

FIELD_COLOR = "#4C342E"
ZIP_COLOR = "#AE5C37"
FIELD_VARIANCE = 6
ZIP_VARIANCE = 8
MAX_DRAWS_PER_PIXEL = 100


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    text = value.lstrip("#")
    if len(text) != 6:
        raise ValueError(f"Expected #rrggbb colour, got {value!r}")
    raw = bytes.fromhex(text)
    return raw[0], raw[1], raw[2]


def vary_color(base: str, variance: int, rng: random.Random) -> tuple[int, int, int]:
    """Shift each channel by an offset in `[-variance, variance)`, clamped to a byte."""

    return tuple(  # type: ignore[return-value]
        max(0, min(255, channel + rng.randrange(-variance, variance)))
        for channel in hex_to_rgb(base)
    )


def generate_pixels(width: int, height: int, rng: random.Random | None = None) -> list[str]:
    """Row-major `rrggbb` + column-byte pixels, every selector distinct.

    Raises `PixelDataError` when a pixel cannot be given an unused selector
    within the draw budget; colours are never nudged to force uniqueness.
    """

    if width <= 0 or height <= 0:
        raise PixelDataError("width and height must be positive")
    if width > 256:
        raise PixelDataError("width must be <= 256 so the column fits in one byte")
    rng = rng or random.Random()  # noqa: S311
    zip_column = width // 2
    used: set[str] = set()
    pixels: list[str] = []

    for y in range(height):
        for x in range(width):
            is_zip = x == zip_column
            for _ in range(MAX_DRAWS_PER_PIXEL):
                if is_zip:
                    r, g, b = vary_color(ZIP_COLOR, ZIP_VARIANCE, rng)
                else:
                    r, g, b = vary_color(FIELD_COLOR, FIELD_VARIANCE, rng)
                candidate = f"{r:02x}{g:02x}{b:02x}{x:02x}"
                if candidate not in used:
                    break
            else:
                raise PixelDataError(
                    f"Could not find an unused selector for pixel ({x}, {y}) after "
                    f"{MAX_DRAWS_PER_PIXEL} draws; use a smaller image or another seed.",
                )
            used.add(candidate)
            pixels.append(candidate)
    return pixels


def generate_grid(width: int, height: int, *, seed: int | None = None) -> PixelGrid:
    rng = random.Random(seed)  # noqa: S311
    return PixelGrid(width=width, height=height, pixels=generate_pixels(width, height, rng))


def render_svg(grid: PixelGrid, *, pixel_size: int = 20) -> str:
    svg_width = grid.width * pixel_size
    svg_height = grid.height * pixel_size
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg width="{svg_width}" height="{svg_height}" xmlns="http://www.w3.org/2000/svg">',
        f'  <rect width="{svg_width}" height="{svg_height}" fill="#000000"/>',
    ]
    for y in range(grid.height):
        for x in range(grid.width):
            color = grid.pixels[y * grid.width + x][:6]
            lines.append(
                f'  <rect x="{x * pixel_size}" y="{y * pixel_size}" '
                f'width="{pixel_size}" height="{pixel_size}" fill="#{color}"/>',
            )
    lines.append("</svg>")
    return "\n".join(lines)
