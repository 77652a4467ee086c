"""Bearer token handling for the Quant Cloud SDK."""

from __future__ import annotations

from typing import Dict, Optional


def build_auth_headers(token: Optional[str] = None) -> Dict[str, str]:
    """Return Authorization header dict if an access token is available.

    Returns empty dict for unauthenticated calls (the token endpoint).
    """
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}
