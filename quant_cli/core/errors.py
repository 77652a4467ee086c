"""User-facing error taxonomy for the CLI.

Every error carries a short message and, where one exists, a hint naming the
command that fixes it. ``_run_safe`` in ``quant_cli.cli`` renders both.
"""

from __future__ import annotations

from typing import Iterable, Optional


class QuantCliError(Exception):
    """Base class for expected, user-actionable failures."""

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)


# ── Context ──────────────────────────────────────────────────────

class NotAuthenticatedError(QuantCliError):
    def __init__(self, message: str = "Not authenticated.") -> None:
        super().__init__(message, hint="Run `quant-cloud login` to authenticate.")


class UnknownPlatformError(QuantCliError):
    def __init__(self, platform_id: str, available: Iterable[str] = ()) -> None:
        self.platform_id = platform_id
        self.available = list(available)
        choices = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"Platform '{platform_id}' is not authenticated (available: {choices}).",
            hint="Run `quant-cloud login` for that platform or `quant-cloud platform list`.",
        )


class NoActivePlatformError(QuantCliError):
    def __init__(self) -> None:
        super().__init__(
            "No active platform set.",
            hint="Use `quant-cloud platform switch` to activate a platform.",
        )


class MissingContextError(QuantCliError):
    """A navigational field required by a command is unset after layering."""

    field = ""
    option = ""
    select_command = ""

    def __init__(self) -> None:
        super().__init__(
            f"No {self.field} specified.",
            hint=f"Use {self.option} or set an active {self.field} with `{self.select_command}`.",
        )


class MissingOrganizationError(MissingContextError):
    field = "organization"
    option = "--org"
    select_command = "quant-cloud org select"


class MissingApplicationError(MissingContextError):
    field = "application"
    option = "--app"
    select_command = "quant-cloud app select"


class MissingEnvironmentError(MissingContextError):
    field = "environment"
    option = "--env"
    select_command = "quant-cloud env select"


# ── Login ────────────────────────────────────────────────────────

class LoginError(QuantCliError):
    """A login attempt failed; nothing was persisted."""

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint or "Run `quant-cloud login` to try again.")


class AuthorizationDeniedError(LoginError):
    def __init__(self, error: str) -> None:
        self.error = error
        super().__init__(f"OAuth error: {error}")


class StateMismatchError(LoginError):
    def __init__(self) -> None:
        super().__init__("Invalid state parameter in OAuth callback.")


class CallbackError(LoginError):
    pass


class CallbackPortInUseError(LoginError):
    def __init__(self, port: int) -> None:
        self.port = port
        super().__init__(
            f"Port {port} is already in use.",
            hint="Try a different port with --port.",
        )


class LoginTimeoutError(LoginError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Authentication timeout after {int(timeout)}s.")


class TokenExchangeError(LoginError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Token exchange failed: {detail}")


class ProfileFetchError(LoginError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to get user info: {detail}")
