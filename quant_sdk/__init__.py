"""Quant Cloud Python SDK — typed client for the Quant Cloud platform API."""

from quant_sdk.client import QuantCloudClient
from quant_sdk.errors import (
    ApiError,
    AuthError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "QuantCloudClient",
    "ApiError",
    "AuthError",
    "ForbiddenError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
]
