from __future__ import annotations

import allure
from helpers import mineable_grid, selector_hex_for

from pixel_selectors.mining.models import FunctionRecord
from pixel_selectors.selectors import derive_targets
from pixel_selectors.verify import render_report_lines, verify_records

pytestmark = [
    allure.epic("Selector Mining"),
    allure.feature("Verification"),
]


def _record(index: int, name: str, selector: str | None = None) -> FunctionRecord:
    return FunctionRecord(
        index=index,
        selector=selector or selector_hex_for(name),
        func_name=name,
        signature=f"{name}()",
        seed=name[1:],
        prefix="f",
    )


def test_matching_records_pass() -> None:
    targets = derive_targets(mineable_grid(3, 1))

    report = verify_records(targets, [_record(n, f"f{n}") for n in range(3)])

    assert report.ok
    assert len(report.correct) == 3
    assert render_report_lines(report)[-1] == "Verification: passed"


def test_report_lists_every_problem_kind() -> None:
    targets = derive_targets(mineable_grid(3, 1))
    stray = selector_hex_for("f99")
    other_column = "fe" if targets[0].hex.endswith("ff") else "ff"
    same_rgb_other_column = targets[0].hex[:6] + other_column
    records = [
        _record(0, "f0"),
        _record(1, "f7", selector=targets[1].hex),
        _record(2, "f99"),
        _record(3, "f0", selector=same_rgb_other_column),
    ]

    report = verify_records(targets, records)

    assert not report.ok
    assert report.correct == [targets[0].hex, targets[1].hex]
    assert report.missing == [targets[2].hex]
    assert report.mismatched == [targets[1].hex, same_rgb_other_column]
    assert report.duplicate_names == ["f0"]
    unexpected = {item.selector: item.rgb_matches for item in report.unexpected}
    assert unexpected[stray] == []
    assert unexpected[same_rgb_other_column] == [targets[0].hex]

    lines = render_report_lines(report)
    assert f"  missing 0x{targets[2].hex}" in lines
    assert "  duplicate name f0" in lines
    assert any("RGB matches target" in line for line in lines)
    assert lines[-1] == "Verification: failed"
