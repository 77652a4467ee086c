"""Utilities: request-ID helpers."""

from __future__ import annotations

import uuid


def generate_request_id() -> str:
    """Generate a short UUID4 hex string for X-Request-ID."""
    return uuid.uuid4().hex[:12]
