"""Runtime configuration for the mining and generation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pixel_selectors.emitter import DEFAULT_AUTHORIZED_ADDRESS, validate_address


@dataclass(slots=True)
class PathSettings:
    """Input, state and artifact file locations."""

    data_dir: Path = Path("data")
    pixels_path: Path = Path("data/pixel-data.json")
    progress_path: Path = Path("data/selector-mining-progress.json")
    cache_path: Path = Path("data/mined-selectors-db.json")
    metadata_path: Path = Path("data/selector-contract-metadata.json")
    svg_path: Path = Path("data/generated-image.svg")
    contract_path: Path = Path("src/PUSH4.sol")
    proxy_contract_path: Path = Path("src/PUSH4ProxyTemplate.sol")


@dataclass(slots=True)
class MinerSettings:
    """External search worker settings."""

    miner_dir: Path = Path("function-selector-miner-cuda")
    binary_name: str = "selector_miner_cuda"
    command: str | None = None
    build_command: str = "make"
    compiler_probe: str | None = "nvcc --version"
    timeout_seconds: int = 300
    max_attempts: int = 30
    batch_threshold: int = 10
    signature_placeholder: str = "()"
    initial_prefix: str = "f"


@dataclass(slots=True)
class ContractSettings:
    """Generated contract settings."""

    authorized_address: str = DEFAULT_AUTHORIZED_ADDRESS
    contract_name: str = "PUSH4"
    proxy_contract_name: str = "PUSH4ProxyTemplate"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    paths: PathSettings = field(default_factory=PathSettings)
    miner: MinerSettings = field(default_factory=MinerSettings)
    contract: ContractSettings = field(default_factory=ContractSettings)

    @classmethod
    def from_env(cls, data_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local development.

        Call `validate()` once command-line overrides have been applied.
        """

        resolved_data_dir = data_dir or Path(os.getenv("PIXEL_SELECTORS_DATA_DIR", "data"))
        settings = cls(
            paths=PathSettings(
                data_dir=resolved_data_dir,
                pixels_path=_env_path(
                    "PIXEL_SELECTORS_PIXELS_PATH",
                    resolved_data_dir / "pixel-data.json",
                ),
                progress_path=_env_path(
                    "PIXEL_SELECTORS_PROGRESS_PATH",
                    resolved_data_dir / "selector-mining-progress.json",
                ),
                cache_path=_env_path(
                    "PIXEL_SELECTORS_CACHE_PATH",
                    resolved_data_dir / "mined-selectors-db.json",
                ),
                metadata_path=_env_path(
                    "PIXEL_SELECTORS_METADATA_PATH",
                    resolved_data_dir / "selector-contract-metadata.json",
                ),
                svg_path=_env_path(
                    "PIXEL_SELECTORS_SVG_PATH",
                    resolved_data_dir / "generated-image.svg",
                ),
                contract_path=_env_path("PIXEL_SELECTORS_CONTRACT_PATH", Path("src/PUSH4.sol")),
                proxy_contract_path=_env_path(
                    "PIXEL_SELECTORS_PROXY_CONTRACT_PATH",
                    Path("src/PUSH4ProxyTemplate.sol"),
                ),
            ),
            miner=MinerSettings(
                miner_dir=Path(
                    os.getenv("PIXEL_SELECTORS_MINER_DIR", "function-selector-miner-cuda"),
                ),
                binary_name=os.getenv("PIXEL_SELECTORS_MINER_BINARY", "selector_miner_cuda"),
                command=os.getenv("PIXEL_SELECTORS_MINER_COMMAND") or None,
                build_command=os.getenv("PIXEL_SELECTORS_MINER_BUILD_COMMAND", "make"),
                compiler_probe=os.getenv("PIXEL_SELECTORS_MINER_COMPILER_PROBE", "nvcc --version")
                or None,
                timeout_seconds=_env_int("PIXEL_SELECTORS_MINER_TIMEOUT_SECONDS", 300),
                max_attempts=_env_int("PIXEL_SELECTORS_MINER_MAX_ATTEMPTS", 30),
                batch_threshold=_env_int("PIXEL_SELECTORS_MINER_BATCH_THRESHOLD", 10),
                signature_placeholder=os.getenv("PIXEL_SELECTORS_SIGNATURE_PLACEHOLDER", "()"),
                initial_prefix=os.getenv("PIXEL_SELECTORS_INITIAL_PREFIX", "f"),
            ),
            contract=ContractSettings(
                authorized_address=os.getenv(
                    "PIXEL_SELECTORS_AUTHORIZED_ADDRESS",
                    DEFAULT_AUTHORIZED_ADDRESS,
                ),
                contract_name=os.getenv("PIXEL_SELECTORS_CONTRACT_NAME", "PUSH4"),
                proxy_contract_name=os.getenv(
                    "PIXEL_SELECTORS_PROXY_CONTRACT_NAME",
                    "PUSH4ProxyTemplate",
                ),
            ),
        )
        return settings

    def validate(self) -> None:
        """Raise configuration error naming the offending variable."""

        if self.miner.timeout_seconds <= 0:
            raise ValueError("PIXEL_SELECTORS_MINER_TIMEOUT_SECONDS must be > 0.")
        if self.miner.max_attempts <= 0:
            raise ValueError("PIXEL_SELECTORS_MINER_MAX_ATTEMPTS must be > 0.")
        if self.miner.batch_threshold <= 0:
            raise ValueError("PIXEL_SELECTORS_MINER_BATCH_THRESHOLD must be > 0.")
        if not self.miner.initial_prefix or not self.miner.initial_prefix.isidentifier():
            raise ValueError(
                "PIXEL_SELECTORS_INITIAL_PREFIX must be a non-empty identifier, "
                f"got {self.miner.initial_prefix!r}.",
            )
        try:
            validate_address(self.contract.authorized_address)
        except ValueError as error:
            raise ValueError(f"PIXEL_SELECTORS_AUTHORIZED_ADDRESS: {error}") from error
        for name in (self.contract.contract_name, self.contract.proxy_contract_name):
            if not name.isidentifier():
                raise ValueError(f"Contract name must be an identifier: {name!r}")


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    return Path(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
