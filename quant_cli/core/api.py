"""Platform API clients built from the resolved context."""

from __future__ import annotations

from typing import Optional

from quant_cli.core.models import EffectiveContext
from quant_sdk import QuantCloudClient


def make_client(host: str, token: Optional[str] = None) -> QuantCloudClient:
    return QuantCloudClient(base_url=host, token=token)


def client_for_context(context: EffectiveContext) -> QuantCloudClient:
    return make_client(context.host, token=context.token)
