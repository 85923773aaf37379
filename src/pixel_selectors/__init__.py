"""Pixel art encoded as mined smart-contract function selectors."""

__version__ = "0.1.0"
