"""Structured exceptions for the Quant Cloud SDK."""

from __future__ import annotations

from typing import Any, Dict, Optional, Type


class ApiError(Exception):
    """An error response from a Quant Cloud endpoint.

    ``detail`` is the decoded response body. ``error_code`` is the OAuth
    ``error`` value (``invalid_grant``, ``invalid_client``, ...) when the body
    carried one.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        detail: Any = None,
        request_id: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.detail = detail
        self.request_id = request_id
        self.error_code = error_code
        super().__init__(f"[{status_code}] {message}")


class AuthError(ApiError):
    """401: access token missing, expired or revoked."""


class ForbiddenError(ApiError):
    """403: no access to the organization or resource."""


class NotFoundError(ApiError):
    """404: unknown organization, application or environment."""


class ValidationError(ApiError):
    pass


class ServerError(ApiError):
    """5xx from the platform."""


_STATUS_ERRORS: Dict[int, Type[ApiError]] = {
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    422: ValidationError,
}


def error_class_for_status(status_code: int) -> Type[ApiError]:
    if status_code >= 500:
        return ServerError
    return _STATUS_ERRORS.get(status_code, ApiError)
