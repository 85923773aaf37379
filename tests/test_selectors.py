from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from pixel_selectors.selectors import (
    PixelDataError,
    PixelGrid,
    derive_targets,
    function_selector,
    keccak256,
    load_pixel_grid,
    normalize_selector_hex,
    selector_from_rgb,
)

pytestmark = [
    allure.epic("Selector Mining"),
    allure.feature("Target Derivation"),
]


def test_keccak256_uses_ethereum_padding() -> None:
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


@pytest.mark.parametrize(
    ("signature", "expected"),
    [
        ("transfer(address,uint256)", "a9059cbb"),
        ("balanceOf(address)", "70a08231"),
    ],
)
def test_function_selector_matches_known_abi_selectors(signature: str, expected: str) -> None:
    assert function_selector(signature).hex() == expected


def test_normalize_selector_hex_accepts_prefixed_and_uppercase() -> None:
    assert normalize_selector_hex("0xA9059CBB") == "a9059cbb"
    assert normalize_selector_hex(" a9059cbb ") == "a9059cbb"


@pytest.mark.parametrize("value", ["0x123", "zz059cbb", "0xa9059cbb00"])
def test_normalize_selector_hex_rejects_invalid_text(value: str) -> None:
    with pytest.raises(PixelDataError, match="Invalid selector hex"):
        normalize_selector_hex(value)


def test_selector_from_rgb_packs_column_as_last_byte() -> None:
    assert selector_from_rgb(0x4C, 0x34, 0x2E, 7).hex() == "4c342e07"

    with pytest.raises(PixelDataError, match="column"):
        selector_from_rgb(0, 0, 0, 256)


def test_derive_targets_preserves_row_major_order() -> None:
    grid = PixelGrid(width=2, height=2, pixels=["0x11111100", "22222201", "33333300", "44444401"])

    targets = derive_targets(grid)

    assert [target.index for target in targets] == [0, 1, 2, 3]
    assert [target.hex for target in targets] == ["11111100", "22222201", "33333300", "44444401"]
    assert targets[1].rgb == (0x22, 0x22, 0x22)
    assert targets[1].column == 1
    assert targets[3].prefixed_hex == "0x44444401"
    assert targets[0].numeric_value == 0x11111100


def test_derive_targets_rejects_duplicate_selectors() -> None:
    grid = PixelGrid(width=2, height=1, pixels=["11111100", "0x11111100"])

    with pytest.raises(PixelDataError, match="Duplicate selector 0x11111100 at pixels 0 and 1"):
        derive_targets(grid)


def test_load_pixel_grid_reads_decoder_output(tmp_path: Path) -> None:
    path = tmp_path / "pixel-data.json"
    path.write_text(
        json.dumps({"width": 2, "height": 1, "pixels": ["0xAABBCC00", "ddeeff01"]}),
        "utf-8",
    )

    grid = load_pixel_grid(path)

    assert grid.pixels == ["aabbcc00", "ddeeff01"]
    assert grid.rgb_at(1, 0) == (0xDD, 0xEE, 0xFF)


def test_load_pixel_grid_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(PixelDataError, match="not found"):
        load_pixel_grid(tmp_path / "absent.json")


def test_load_pixel_grid_rejects_size_mismatch(tmp_path: Path) -> None:
    path = tmp_path / "pixel-data.json"
    path.write_text(json.dumps({"width": 2, "height": 2, "pixels": ["aabbcc00"]}), "utf-8")

    with pytest.raises(PixelDataError, match="expected 2x2=4"):
        load_pixel_grid(path)


def test_load_pixel_grid_rejects_non_object_json(tmp_path: Path) -> None:
    path = tmp_path / "pixel-data.json"
    path.write_text("[1, 2, 3]", "utf-8")

    with pytest.raises(PixelDataError, match="Could not parse"):
        load_pixel_grid(path)
