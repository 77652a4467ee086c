"""Project-local overrides from ``.quant.yml``.

The file is searched for from the working directory upwards, stopping at the
repository root (a directory holding ``.git``) so one checkout never picks up
another project's settings. Only ``platform``, ``org``, ``app`` and ``env``
string values are recognized; everything else is dropped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import yaml

from quant_cli.core.io import read_yaml
from quant_cli.core.models import ProjectConfig
from quant_cli.core.settings import PROJECT_CONFIG_FILENAME, VCS_ROOT_MARKER

logger = logging.getLogger("quant.project_config")

RECOGNIZED_KEYS = ("platform", "org", "app", "env")


def find_config_file(start_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Return the nearest ``.quant.yml`` at or above ``start_dir`` within the repository."""
    current = Path(start_dir or Path.cwd()).resolve()
    logger.debug("Looking for %s starting from: %s", PROJECT_CONFIG_FILENAME, current)

    while True:
        candidate = current / PROJECT_CONFIG_FILENAME
        if candidate.is_file():
            logger.debug("Found project config at: %s", candidate)
            return candidate

        if (current / VCS_ROOT_MARKER).exists():
            logger.debug("Reached repository root at: %s, stopping search", current)
            return None

        parent = current.parent
        if parent == current:
            break
        current = parent

    logger.debug("No %s file found", PROJECT_CONFIG_FILENAME)
    return None


def load_config(path: Union[str, Path]) -> ProjectConfig:
    """Parse ``path``; any problem yields an empty config rather than an error."""
    try:
        parsed = read_yaml(path)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning("Failed to load %s: %s", path, e)
        return ProjectConfig()

    if not isinstance(parsed, dict):
        if parsed is not None:
            logger.warning("Invalid %s format at %s: expected a mapping", PROJECT_CONFIG_FILENAME, path)
        return ProjectConfig()

    values = {
        key: parsed[key]
        for key in RECOGNIZED_KEYS
        if isinstance(parsed.get(key), str) and parsed[key]
    }
    config = ProjectConfig(**values)
    logger.debug("Loaded project config: %s", config.as_dict())
    return config


def get_project_config(start_dir: Optional[Union[str, Path]] = None) -> ProjectConfig:
    """Find and load the nearest project config; empty when there is none."""
    path = find_config_file(start_dir)
    if path is None:
        return ProjectConfig()

    config = load_config(path)
    if not config.is_empty():
        summary = ", ".join(f"{k}={v}" for k, v in config.as_dict().items())
        logger.debug("Using project config: %s", summary)
    return config
