"""Quant Cloud CLI."""

__version__ = "0.1.0"
