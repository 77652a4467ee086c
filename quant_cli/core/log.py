"""Logging setup for the CLI.

Diagnostics go to stderr through the standard ``logging`` module under the
``quant`` namespace; user-facing output goes through rich consoles.
"""

from __future__ import annotations

import logging

from quant_cli.core.settings import load_settings

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(verbose: bool = False) -> int:
    """Configure CLI logging; ``verbose`` forces DEBUG. Returns the level used."""
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(load_settings().log_level)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(format=_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    logging.getLogger("quant").setLevel(level)
    return level
