"""Search worker backends."""

from pixel_selectors.mining.backend.base import SelectorSearchService
from pixel_selectors.mining.backend.cli_backend import CliMinerBackend

__all__ = [
    "CliMinerBackend",
    "SelectorSearchService",
]
