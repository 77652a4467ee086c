"""Shared test fixtures for Quant Cloud SDK tests."""

from __future__ import annotations

import pytest

from quant_cli.tests.mock_platform import MockPlatform


@pytest.fixture
def platform():
    """In-memory platform with one accepted token (``stored-token``)."""
    return MockPlatform()
