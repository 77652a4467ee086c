"""Runtime settings for the Quant Cloud CLI.

Reads environment variables with sensible defaults. Settings are rebuilt on
every call so tests (and long-lived shells) always see the current
environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

CREDENTIALS_FILENAME = "credentials"
PROJECT_CONFIG_FILENAME = ".quant.yml"
VCS_ROOT_MARKER = ".git"

DEFAULT_CALLBACK_PORT = 8090
DEFAULT_LOGIN_TIMEOUT = 300
DEFAULT_CLIENT_ID = "quant-cli"


def _int_env(key: str, default: int) -> int:
    """Parse an int env var with fallback."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Immutable CLI configuration."""

    config_dir: Path
    callback_port: int = DEFAULT_CALLBACK_PORT
    login_timeout: int = DEFAULT_LOGIN_TIMEOUT
    client_id: str = DEFAULT_CLIENT_ID
    log_level: str = "WARNING"

    @property
    def credentials_file(self) -> Path:
        return self.config_dir / CREDENTIALS_FILENAME


def _default_config_dir() -> Path:
    override = os.environ.get("QUANT_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".quant"


def load_settings() -> Settings:
    return Settings(
        config_dir=_default_config_dir(),
        callback_port=_int_env("QUANT_CALLBACK_PORT", DEFAULT_CALLBACK_PORT),
        login_timeout=_int_env("QUANT_LOGIN_TIMEOUT", DEFAULT_LOGIN_TIMEOUT),
        client_id=os.environ.get("QUANT_CLIENT_ID") or DEFAULT_CLIENT_ID,
        log_level=(os.environ.get("QUANT_LOG_LEVEL") or "WARNING").upper(),
    )
