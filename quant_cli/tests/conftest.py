"""Shared test fixtures for Quant Cloud CLI tests.

SDK clients built by ``quant_cli.core.api.make_client`` are pointed at the
in-memory platform from ``mock_platform``. No real network calls except to
the loopback OAuth callback listener.
"""

from __future__ import annotations

import pytest

from quant_cli.core.credentials import CredentialStore
from quant_cli.tests.mock_platform import FakeBrowser, MockPlatform, add_platform, make_client_factory


@pytest.fixture
def mock_platform():
    return MockPlatform()


@pytest.fixture
def client_factory(mock_platform):
    return make_client_factory(mock_platform)


@pytest.fixture
def patched_api(monkeypatch, client_factory):
    monkeypatch.setattr("quant_cli.core.api.make_client", client_factory)
    return client_factory


@pytest.fixture
def store(config_dir):
    return CredentialStore(config_dir / "credentials")


@pytest.fixture
def fake_browser(mock_platform):
    return FakeBrowser(mock_platform)


@pytest.fixture
def logged_in(store):
    """A store with one active platform whose session the mock platform accepts."""
    add_platform(store, "acme-cloud")
    return store
