"""Consistency checks between pixel targets and recorded mining results."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from pixel_selectors.mining.models import FunctionRecord
from pixel_selectors.selectors import PixelSelector, function_selector


@dataclass(slots=True)
class UnexpectedSelector:
    """Recorded selector that is not among the targets."""

    selector: str
    rgb_matches: list[str] = field(default_factory=list)


@dataclass(slots=True)
class VerificationReport:
    correct: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    unexpected: list[UnexpectedSelector] = field(default_factory=list)
    mismatched: list[str] = field(default_factory=list)
    duplicate_names: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.missing or self.unexpected or self.mismatched or self.duplicate_names)


def verify_records(
    targets: Sequence[PixelSelector],
    records: Sequence[FunctionRecord],
) -> VerificationReport:
    report = VerificationReport()
    target_hexes = {target.hex for target in targets}
    recorded: dict[str, FunctionRecord] = {}

    for record in records:
        recorded[record.selector] = record
        if function_selector(record.signature).hex() != record.selector:
            report.mismatched.append(record.selector)

    name_counts = Counter(record.func_name for record in records)
    report.duplicate_names = sorted(name for name, count in name_counts.items() if count > 1)

    for target in targets:
        if target.hex in recorded:
            report.correct.append(target.hex)
        else:
            report.missing.append(target.hex)

    for selector in sorted(set(recorded) - target_hexes):
        report.unexpected.append(
            UnexpectedSelector(
                selector=selector,
                rgb_matches=sorted(
                    target for target in target_hexes if target[:6] == selector[:6]
                ),
            ),
        )
    return report


def render_report_lines(report: VerificationReport) -> list[str]:
    lines = [
        f"Correct matches:   {len(report.correct)}",
        f"Missing records:   {len(report.missing)}",
        f"Unexpected:        {len(report.unexpected)}",
        f"Hash mismatches:   {len(report.mismatched)}",
        f"Duplicate names:   {len(report.duplicate_names)}",
    ]
    for selector in report.missing:
        lines.append(f"  missing 0x{selector}")
    for item in report.unexpected:
        if item.rgb_matches:
            others = ", ".join(f"0x{value}" for value in item.rgb_matches)
            lines.append(f"  unexpected 0x{item.selector} (RGB matches target {others})")
        else:
            lines.append(f"  unexpected 0x{item.selector} (RGB matches no target)")
    for selector in report.mismatched:
        lines.append(f"  hash mismatch 0x{selector}")
    for name in report.duplicate_names:
        lines.append(f"  duplicate name {name}")
    lines.append("Verification: passed" if report.ok else "Verification: failed")
    return lines
