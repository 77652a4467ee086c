"""Repo-wide test fixtures.

Snapshots and restores the CLI's environment variables between tests, points
the credential store at a temporary directory, and runs every test inside a
throwaway repository so no real ``~/.quant`` or ``.quant.yml`` is touched.
"""

from __future__ import annotations

import os

import pytest

_SENSITIVE_ENV_VARS = [
    "QUANT_CONFIG_DIR",
    "QUANT_CALLBACK_PORT",
    "QUANT_LOGIN_TIMEOUT",
    "QUANT_CLIENT_ID",
    "QUANT_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _restore_env():
    """Snapshot sensitive env vars before each test and restore after."""
    snapshot = {}
    for var in _SENSITIVE_ENV_VARS:
        val = os.environ.get(var)
        if val is not None:
            snapshot[var] = val

    yield

    # Restore: remove any that were added, reset any that changed
    for var in _SENSITIVE_ENV_VARS:
        if var in snapshot:
            os.environ[var] = snapshot[var]
        else:
            os.environ.pop(var, None)


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


@pytest.fixture
def project_dir(tmp_path):
    """A repository root (holds ``.git``) to run commands from."""
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture(autouse=True)
def _isolated_workspace(_restore_env, config_dir, project_dir, monkeypatch):
    for var in _SENSITIVE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("QUANT_CONFIG_DIR", str(config_dir))
    monkeypatch.chdir(project_dir)
