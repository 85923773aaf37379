"""CLI entrypoint for pixel-selectors."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from pixel_selectors import __version__
from pixel_selectors.controllers import (
    GenerateContractCommand,
    GenerateImageCommand,
    GenerateProxyCommand,
    MinerCheckCommand,
    PixelSelectorsCliController,
    VerifyCommand,
)
from pixel_selectors.mining.errors import MiningError, WorkerUnavailable

click.rich_click.USE_MARKDOWN = True
CONTROLLER = PixelSelectorsCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

T = TypeVar("T")


@click.group()
@click.version_option(version=__version__, prog_name="pixel-selectors")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Root logger level.",
)
def pixel_selectors(log_level: str) -> None:
    """Mine function names whose selectors encode pixel colours, then emit contracts."""

    logging.basicConfig(level=log_level.upper(), format="%(message)s")


@pixel_selectors.group()
def image() -> None:
    """Pixel image commands."""


@image.command("generate")
@click.option("--width", type=click.IntRange(min=1, max=256), default=15, show_default=True)
@click.option("--height", type=click.IntRange(min=1), default=25, show_default=True)
@click.option("--seed", type=int, default=None, help="Random seed for reproducible images.")
@click.option(
    "--pixels-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Output pixel JSON path.",
)
@click.option(
    "--svg-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Output SVG preview path.",
)
def image_generate(
    width: int,
    height: int,
    seed: int | None,
    pixels_path: Path | None,
    svg_path: Path | None,
) -> None:
    """Generate the demo zip image as pixel JSON and an SVG preview."""

    _emit_lines(
        _run(
            lambda: CONTROLLER.generate_image(
                GenerateImageCommand(
                    width=width,
                    height=height,
                    seed=seed,
                    pixels_path=pixels_path,
                    svg_path=svg_path,
                ),
            ),
        ),
    )


@pixel_selectors.group()
def contract() -> None:
    """Contract generation commands."""


@contract.command("generate")
@click.option(
    "--pixels-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Input pixel JSON path.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Generated contract path.",
)
@click.option(
    "--authorized-address",
    default=None,
    help="Core contract address consulted for the proxy. "
    "If omitted, PIXEL_SELECTORS_AUTHORIZED_ADDRESS is used.",
)
@click.option(
    "--batch-threshold",
    type=click.IntRange(min=1),
    default=None,
    help="Minimum number of pending selectors that switches to batch mining.",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Single-mode attempts per selector before giving up.",
)
@click.option(
    "--timeout-seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Timeout for one single-mode worker invocation.",
)
def contract_generate(  # noqa: PLR0913
    pixels_path: Path | None,
    output_path: Path | None,
    authorized_address: str | None,
    batch_threshold: int | None,
    max_attempts: int | None,
    timeout_seconds: int | None,
) -> None:
    """Mine every missing selector, then write the selector contract and metadata."""

    _emit_lines(
        _run(
            lambda: CONTROLLER.generate_contract(
                GenerateContractCommand(
                    pixels_path=pixels_path,
                    output_path=output_path,
                    authorized_address=authorized_address,
                    batch_threshold=batch_threshold,
                    max_attempts=max_attempts,
                    timeout_seconds=timeout_seconds,
                ),
            ),
        ),
    )


@contract.command("proxy")
@click.option(
    "--pixels-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Input pixel JSON path with the true colours.",
)
@click.option(
    "--selectors-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Selector table JSON (progress, metadata or pixel file). "
    "Defaults to the built-in reference layout.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Generated proxy contract path.",
)
def contract_proxy(
    pixels_path: Path | None,
    selectors_path: Path | None,
    output_path: Path | None,
) -> None:
    """Write the proxy template that maps selectors to render rows and true colours."""

    _emit_lines(
        _run(
            lambda: CONTROLLER.generate_proxy(
                GenerateProxyCommand(
                    pixels_path=pixels_path,
                    selectors_path=selectors_path,
                    output_path=output_path,
                ),
            ),
        ),
    )


@pixel_selectors.group()
def selectors() -> None:
    """Selector inspection commands."""


@selectors.command("verify")
@click.option(
    "--pixels-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Input pixel JSON path.",
)
@click.option(
    "--progress-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Progress file to check against the pixel targets.",
)
def selectors_verify(pixels_path: Path | None, progress_path: Path | None) -> None:
    """Check that recorded functions hash to exactly the pixel targets."""

    result = _run(
        lambda: CONTROLLER.verify(
            VerifyCommand(pixels_path=pixels_path, progress_path=progress_path),
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Selector verification failed.")


@pixel_selectors.group()
def miner() -> None:
    """Search worker commands."""


@miner.command("check")
@click.option(
    "--command",
    "miner_command",
    default=None,
    help="Worker command line. If omitted, PIXEL_SELECTORS_MINER_COMMAND is used, "
    "otherwise the binary is built in the miner directory.",
)
def miner_check(miner_command: str | None) -> None:
    """Resolve the search worker, building it when needed."""

    _emit_lines(_run(lambda: CONTROLLER.check_miner(MinerCheckCommand(command=miner_command))))


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except WorkerUnavailable as error:
        raise click.ClickException(f"Search worker unavailable: {error}") from error
    except MiningError as error:
        target = ""
        if error.target_hex and error.target_hex not in str(error):
            target = f" (selector 0x{error.target_hex})"
        raise click.ClickException(
            f"{error}{target}. Progress has been saved. Run the command again to resume.",
        ) from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pixel_selectors()
