"""Safe file I/O, JSON/YAML helpers."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Union

import yaml


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create directory and parents if needed, return Path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file and return parsed contents."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Union[str, Path], data: Any, indent: int = 2, mode: int = 0o600) -> Path:
    """Write data to a JSON file, replacing it in one step.

    The document is written to a sibling temp file first and moved over the
    target, so readers never observe a half-written file.
    """
    p = Path(path)
    ensure_dir(p.parent)
    tmp = p.with_name(f".{p.name}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
    os.chmod(tmp, mode)
    os.replace(tmp, p)
    return p


def read_yaml(path: Union[str, Path]) -> Any:
    """Read a YAML file and return parsed contents (None for an empty file)."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)
