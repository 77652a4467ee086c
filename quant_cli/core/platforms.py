"""Platform catalogue: the branded Quant deployments and custom endpoints.

A platform id is derived from its host, so the same host always lands in the
same credential slot.
"""

from __future__ import annotations

import re
from typing import Dict

from quant_cli.core.models import PlatformInfo

CUSTOM_ENDPOINT_NAME = "Custom Endpoint"

KNOWN_PLATFORMS: Dict[str, PlatformInfo] = {
    "quantgov": PlatformInfo(
        id="quantgov",
        name="QuantGov Cloud",
        host="https://dash.quantgov.cloud",
        description="Government & Enterprise Platform",
    ),
    "quantcdn": PlatformInfo(
        id="quantcdn",
        name="Quant Cloud",
        host="https://dashboard.quantcdn.io",
        description="Content Delivery Platform",
    ),
}

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify_host(host: str) -> str:
    """``https://api.example.com:8443/`` -> ``api-example-com-8443``."""
    value = _SCHEME_RE.sub("", host.strip().lower()).rstrip("/")
    return _NON_ALNUM_RE.sub("-", value).strip("-")


def platform_info_for_host(host: str) -> PlatformInfo:
    """Map a host to its platform identity; unknown hosts become custom endpoints."""
    lowered = host.lower()
    for platform_id, known in KNOWN_PLATFORMS.items():
        if platform_id in lowered:
            return known.model_copy(update={"host": host})
    return PlatformInfo(
        id=slugify_host(host) or "custom",
        name=CUSTOM_ENDPOINT_NAME,
        host=host,
        description=host,
    )
