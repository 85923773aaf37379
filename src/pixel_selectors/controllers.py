"""Controllers for pixel-selectors CLI commands."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pixel_selectors.config import Settings
from pixel_selectors.emitter import render_proxy_contract, render_selector_contract
from pixel_selectors.image import generate_grid, render_svg
from pixel_selectors.mining.backend import CliMinerBackend
from pixel_selectors.mining.cache import SelectorCache
from pixel_selectors.mining.ledger import ProgressLedger
from pixel_selectors.mining.models import FunctionRecord
from pixel_selectors.mining.orchestrator import MiningOrchestrator, MiningResult
from pixel_selectors.mining.retry import RandomPrefixStrategy, RetryPolicy
from pixel_selectors.remap import compute_remap
from pixel_selectors.remap_reference import REFERENCE_SELECTORS
from pixel_selectors.selectors import (
    PixelDataError,
    PixelGrid,
    derive_targets,
    load_pixel_grid,
    save_pixel_grid,
)
from pixel_selectors.storage import load_json, write_json
from pixel_selectors.verify import render_report_lines, verify_records

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerateImageCommand:
    """CLI input for demo image synthesis."""

    width: int
    height: int
    seed: int | None
    pixels_path: Path | None
    svg_path: Path | None


@dataclass(slots=True)
class GenerateContractCommand:
    """CLI input for the mine-then-emit pipeline."""

    pixels_path: Path | None
    output_path: Path | None
    authorized_address: str | None
    batch_threshold: int | None = None
    max_attempts: int | None = None
    timeout_seconds: int | None = None


@dataclass(slots=True)
class GenerateProxyCommand:
    """CLI input for proxy template generation."""

    pixels_path: Path | None
    selectors_path: Path | None
    output_path: Path | None


@dataclass(slots=True)
class VerifyCommand:
    """CLI input for selector verification."""

    pixels_path: Path | None
    progress_path: Path | None


@dataclass(slots=True)
class MinerCheckCommand:
    """CLI input for search worker pre-flight."""

    command: str | None = None


@dataclass(slots=True)
class VerifyResult:
    """Verification report to render in CLI."""

    lines: list[str]
    success: bool


class PixelSelectorsCliController:
    """Application controller for CLI commands."""

    def generate_image(self, command: GenerateImageCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate()
        pixels_path = command.pixels_path or settings.paths.pixels_path
        svg_path = command.svg_path or settings.paths.svg_path

        grid = generate_grid(command.width, command.height, seed=command.seed)
        save_pixel_grid(pixels_path, grid)
        svg_path.parent.mkdir(parents=True, exist_ok=True)
        svg_path.write_text(render_svg(grid) + "\n", encoding="utf-8")
        logger.info("Generated %dx%d image with %d pixels", grid.width, grid.height, len(grid.pixels))

        return [
            f"Image: {grid.width}x{grid.height} ({len(grid.pixels)} pixels)",
            f"Pixel data: {pixels_path}",
            f"SVG preview: {svg_path}",
        ]

    def generate_contract(self, command: GenerateContractCommand) -> list[str]:
        settings = Settings.from_env()
        if command.batch_threshold is not None:
            settings.miner.batch_threshold = command.batch_threshold
        if command.max_attempts is not None:
            settings.miner.max_attempts = command.max_attempts
        if command.timeout_seconds is not None:
            settings.miner.timeout_seconds = command.timeout_seconds
        if command.authorized_address is not None:
            settings.contract.authorized_address = command.authorized_address
        settings.validate()

        pixels_path = command.pixels_path or settings.paths.pixels_path
        output_path = command.output_path or settings.paths.contract_path

        grid = load_pixel_grid(pixels_path)
        targets = derive_targets(grid)
        logger.info("Image: %dx%d (%d pixels)", grid.width, grid.height, len(targets))

        orchestrator = build_orchestrator(settings)
        result = orchestrator.resolve_all(targets)

        source = render_selector_contract(
            result.records,
            authorized_address=settings.contract.authorized_address,
            contract_name=settings.contract.contract_name,
        )
        backup_path = _write_with_backup(output_path, source)
        write_json(
            settings.paths.metadata_path,
            _contract_metadata(grid, result.records),
        )

        lines = [
            f"Contract written to {output_path}",
            f"Metadata written to {settings.paths.metadata_path}",
        ]
        if backup_path is not None:
            lines.append(f"Previous contract backed up to {backup_path}")
        lines.extend(_summary_lines(result))
        return lines

    def generate_proxy(self, command: GenerateProxyCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate()
        pixels_path = command.pixels_path or settings.paths.pixels_path
        output_path = command.output_path or settings.paths.proxy_contract_path

        grid = load_pixel_grid(pixels_path)
        if command.selectors_path is None:
            selectors = list(REFERENCE_SELECTORS)
            source_label = "reference layout"
        else:
            selectors = load_selector_table(command.selectors_path)
            source_label = str(command.selectors_path)

        remap = compute_remap(selectors, grid.width)
        source = render_proxy_contract(
            grid,
            remap,
            contract_name=settings.contract.proxy_contract_name,
        )
        backup_path = _write_with_backup(output_path, source)

        lines = [
            f"Proxy contract written to {output_path}",
            f"Selector table: {source_label} ({len(selectors)} selectors, {len(remap)} columns)",
        ]
        if backup_path is not None:
            lines.append(f"Previous contract backed up to {backup_path}")
        return lines

    def verify(self, command: VerifyCommand) -> VerifyResult:
        settings = Settings.from_env()
        settings.validate()
        pixels_path = command.pixels_path or settings.paths.pixels_path
        progress_path = command.progress_path or settings.paths.progress_path

        targets = derive_targets(load_pixel_grid(pixels_path))
        snapshot = ProgressLedger(progress_path).load()
        if snapshot is None:
            return VerifyResult(
                lines=[f"No readable progress file at {progress_path}", "Verification: failed"],
                success=False,
            )

        report = verify_records(targets, snapshot.functions)
        lines = [
            f"Targets: {len(targets)}",
            f"Recorded functions: {len(snapshot.functions)}",
            *render_report_lines(report),
        ]
        return VerifyResult(lines=lines, success=report.ok)

    def check_miner(self, command: MinerCheckCommand) -> list[str]:
        settings = Settings.from_env()
        if command.command is not None:
            settings.miner.command = command.command
        settings.validate()
        backend = build_backend(settings)
        argv = backend.resolve_argv()
        return [
            "Search worker ready:",
            f"  command: {' '.join(argv)}",
            f"  working directory: {backend.workdir or Path.cwd()}",
        ]


def build_backend(settings: Settings) -> CliMinerBackend:
    return CliMinerBackend(
        miner_dir=settings.miner.miner_dir,
        binary_name=settings.miner.binary_name,
        command=settings.miner.command,
        build_command=settings.miner.build_command,
        compiler_probe=settings.miner.compiler_probe,
        batch_prefix=settings.miner.initial_prefix,
        request_dir=settings.paths.data_dir if settings.paths.data_dir.is_dir() else None,
    )


def build_orchestrator(settings: Settings) -> MiningOrchestrator:
    return MiningOrchestrator(
        search=build_backend(settings),
        cache=SelectorCache(settings.paths.cache_path),
        ledger=ProgressLedger(settings.paths.progress_path),
        retry_policy=RetryPolicy(
            max_attempts=settings.miner.max_attempts,
            prefix_strategy=RandomPrefixStrategy(base=settings.miner.initial_prefix),
        ),
        batch_threshold=settings.miner.batch_threshold,
        timeout_seconds=settings.miner.timeout_seconds,
        signature_placeholder=settings.miner.signature_placeholder,
    )


def load_selector_table(path: Path) -> list[str]:
    """Read a row-major selector table from a progress, metadata or pixel JSON file."""

    if not path.exists():
        raise PixelDataError(f"Selector table file not found: {path}")
    try:
        raw = load_json(path)
    except (ValueError, TypeError) as error:
        raise PixelDataError(f"Could not parse selector table {path}: {error}") from error

    for key in ("selectorsData", "selectors", "pixels"):
        values = raw.get(key)
        if isinstance(values, list) and values:
            if not all(isinstance(item, str) for item in values):
                raise PixelDataError(f"{path}: {key} must be an array of hex strings")
            return list(values)
    raise PixelDataError(
        f"{path} has no selectorsData, selectors or pixels array to build the table from",
    )


def _write_with_backup(path: Path, text: str) -> Path | None:
    backup_path: Path | None = None
    if path.exists():
        backup_path = path.with_name(path.name + ".backup")
        shutil.copyfile(path, backup_path)
        logger.info("Backed up existing contract to %s", backup_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return backup_path


def _contract_metadata(grid: PixelGrid, records: list[FunctionRecord]) -> dict[str, Any]:
    return {
        "width": grid.width,
        "height": grid.height,
        "pixels": list(grid.pixels),
        "selectors": ["0x" + record.selector for record in records],
        "functions": [record.to_json() for record in records],
    }


def _summary_lines(result: MiningResult) -> list[str]:
    summary = result.summary
    return [
        "Mining summary: "
        f"total={summary.total} reused={summary.reused} "
        f"mined_batch={summary.mined_batch} mined_single={summary.mined_single} "
        f"rejected_batch={summary.rejected_batch} mode={summary.mode}",
    ]
