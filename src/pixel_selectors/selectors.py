"""Selector hashing and target derivation from pixel data."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from Crypto.Hash import keccak

from pixel_selectors.storage import load_json, write_json

SELECTOR_HEX_RE = re.compile(r"^[0-9a-f]{8}$")


class PixelDataError(ValueError):
    """Pixel input is missing, malformed, or cannot be turned into unique targets."""


def keccak256(data: bytes | str) -> bytes:
    """Ethereum flavoured Keccak-256 (pre-NIST padding, not `hashlib.sha3_256`)."""

    raw = data.encode("utf-8") if isinstance(data, str) else data
    return keccak.new(digest_bits=256, data=raw).digest()


def function_selector(signature: str) -> bytes:
    """First four bytes of the Keccak-256 hash of a function signature."""

    return keccak256(signature)[:4]


def normalize_selector_hex(value: str) -> str:
    """Return bare lowercase 8-digit hex for `0x`-prefixed or bare selector text."""

    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not SELECTOR_HEX_RE.match(text):
        raise PixelDataError(f"Invalid selector hex: {value!r}")
    return text


def selector_from_rgb(r: int, g: int, b: int, column: int) -> bytes:
    """Pack colour channels and the column index byte into a 4-byte selector."""

    for name, channel in (("r", r), ("g", g), ("b", b), ("column", column)):
        if not 0 <= channel <= 0xFF:
            raise PixelDataError(f"{name} must fit in one byte, got {channel}")
    return bytes((r, g, b, column))


@dataclass(frozen=True, slots=True)
class PixelSelector:
    """Target selector for one pixel, in row-major position `index`."""

    index: int
    value_bytes: bytes

    @property
    def hex(self) -> str:
        return self.value_bytes.hex()

    @property
    def prefixed_hex(self) -> str:
        return "0x" + self.value_bytes.hex()

    @property
    def rgb(self) -> tuple[int, int, int]:
        return self.value_bytes[0], self.value_bytes[1], self.value_bytes[2]

    @property
    def column(self) -> int:
        return self.value_bytes[3]

    @property
    def numeric_value(self) -> int:
        return int.from_bytes(self.value_bytes, "big")


@dataclass(slots=True)
class PixelGrid:
    """Decoded image: row-major pixel hex strings `rrggbb` + column byte."""

    width: int
    height: int
    pixels: list[str]

    def rgb_at(self, x: int, y: int) -> tuple[int, int, int]:
        raw = bytes.fromhex(self.pixels[y * self.width + x][:6])
        return raw[0], raw[1], raw[2]

    def to_json(self) -> dict[str, object]:
        return {"width": self.width, "height": self.height, "pixels": list(self.pixels)}


def load_pixel_grid(path: Path) -> PixelGrid:
    """Read the pixel JSON produced by the image decoder or `image generate`."""

    if not path.exists():
        raise PixelDataError(f"Pixel data file not found: {path}")
    try:
        raw = load_json(path)
    except (ValueError, TypeError) as error:
        raise PixelDataError(f"Could not parse pixel data file {path}: {error}") from error

    width = raw.get("width")
    height = raw.get("height")
    pixels = raw.get("pixels")
    if not isinstance(width, int) or width <= 0:
        raise PixelDataError("pixel data width must be a positive integer")
    if not isinstance(height, int) or height <= 0:
        raise PixelDataError("pixel data height must be a positive integer")
    if not isinstance(pixels, list) or not all(isinstance(item, str) for item in pixels):
        raise PixelDataError("pixel data pixels must be an array of hex strings")
    if len(pixels) != width * height:
        raise PixelDataError(
            f"pixel data holds {len(pixels)} pixels, expected {width}x{height}={width * height}",
        )
    return PixelGrid(
        width=width,
        height=height,
        pixels=[normalize_selector_hex(item) for item in pixels],
    )


def save_pixel_grid(path: Path, grid: PixelGrid) -> None:
    write_json(path, grid.to_json())


def derive_targets(grid: PixelGrid) -> list[PixelSelector]:
    """Turn every pixel into its target selector, preserving row-major order."""

    targets: list[PixelSelector] = []
    seen: dict[str, int] = {}
    for index, pixel in enumerate(grid.pixels):
        selector_hex = normalize_selector_hex(pixel)
        if selector_hex in seen:
            raise PixelDataError(
                f"Duplicate selector 0x{selector_hex} at pixels {seen[selector_hex]} and {index}; "
                "each pixel must map to a distinct function.",
            )
        seen[selector_hex] = index
        targets.append(PixelSelector(index=index, value_bytes=bytes.fromhex(selector_hex)))
    return targets
