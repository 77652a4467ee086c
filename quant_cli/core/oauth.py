"""Browser-based OAuth login (authorization code + PKCE).

Flow:
  1. Generate a PKCE verifier/challenge pair and an unguessable ``state``.
  2. Start the loopback callback listener, then open the authorize URL.
  3. The listener accepts exactly one outcome on ``/callback``: an error, a
     state mismatch, a missing code, or the authorization code.
  4. Exchange the code (with the verifier) for tokens, fetch the user profile,
     and only then persist the new session.

The listener is a scoped resource: it is always shut down when the ``with``
block exits, whatever the outcome.
"""

from __future__ import annotations

import base64
import errno
import hashlib
import html
import http.server
import logging
import secrets
import socket
import threading
import webbrowser
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from pydantic import ValidationError

from quant_cli.core.credentials import CredentialStore
from quant_cli.core.errors import (
    AuthorizationDeniedError,
    CallbackError,
    CallbackPortInUseError,
    LoginError,
    LoginTimeoutError,
    ProfileFetchError,
    StateMismatchError,
    TokenExchangeError,
)
from quant_cli.core.models import AuthConfig, PlatformInfo, expiry_from_now
from quant_cli.core.settings import DEFAULT_CALLBACK_PORT, DEFAULT_CLIENT_ID, DEFAULT_LOGIN_TIMEOUT
from quant_sdk import ApiError, QuantCloudClient
from quant_sdk.models import TokenResponse, UserInfo

logger = logging.getLogger("quant.oauth")

CALLBACK_PATH = "/callback"
AUTHORIZE_PATH = "/oauth/authorize"
DEFAULT_SCOPES = ("full_access",)
CODE_CHALLENGE_METHOD = "S256"
IPV4_LOOPBACK = "127.0.0.1"
IPV6_LOOPBACK = "::1"


# ── PKCE ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str
    method: str = CODE_CHALLENGE_METHOD


def compute_code_challenge(verifier: str) -> str:
    """base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce() -> PKCEPair:
    verifier = secrets.token_urlsafe(32)
    return PKCEPair(verifier=verifier, challenge=compute_code_challenge(verifier))


def generate_state() -> str:
    return secrets.token_hex(16)


def build_authorize_url(
    host: str,
    redirect_uri: str,
    client_id: str,
    scopes: Sequence[str],
    state: str,
    pkce: PKCEPair,
) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
    }
    if scopes:
        params["scope"] = " ".join(scopes)
    params.update({
        "state": state,
        "code_challenge": pkce.challenge,
        "code_challenge_method": pkce.method,
    })
    return f"{host.rstrip('/')}{AUTHORIZE_PATH}?{urlencode(params)}"


# ── Callback listener ────────────────────────────────────────────

_PAGE = """<html>
  <head><title>Quant Cloud - {title}</title></head>
  <body style="font-family: system-ui; background: #0a0a0a; color: {color}; text-align: center; padding: 50px;">
    <h1>{title}</h1>
    <p>{message}</p>
  </body>
</html>
"""


def _page(title: str, message: str, ok: bool) -> str:
    return _PAGE.format(title=title, message=message, color="#00ff88" if ok else "#ff4444")


def _first(params: Dict[str, List[str]], key: str) -> Optional[str]:
    values = params.get(key)
    return values[0] if values else None


class _CallbackHandler(http.server.BaseHTTPRequestHandler):
    server: "_CallbackServer"

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self._respond(404, _page("Not Found", "Unknown path.", ok=False))
            return
        status, body = self.server.listener.handle_callback(parse_qs(parsed.query))
        self._respond(status, body)

    def _respond(self, status: int, body: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        logger.debug("callback listener: " + format, *args)


class _CallbackServer(http.server.HTTPServer):
    def __init__(self, address: Tuple, listener: "CallbackListener") -> None:
        self.listener = listener
        super().__init__(address, _CallbackHandler)


class _CallbackServerV6(_CallbackServer):
    address_family = socket.AF_INET6


class CallbackListener:
    """Single-shot loopback listener for the OAuth redirect.

    Usage::

        with CallbackListener(state, port=8090) as listener:
            open_browser(build_authorize_url(..., listener.redirect_uri, ...))
            code = listener.wait(timeout=300)

    ``port=0`` binds an ephemeral port. The redirect URI names ``localhost``,
    so the same port is also bound on ``ipv6_host`` when the system has an IPv6
    loopback; browsers that resolve ``localhost`` to ``::1`` first still land
    here. Pass ``ipv6_host=None`` to listen on ``host`` only.
    """

    def __init__(
        self,
        expected_state: str,
        port: int = DEFAULT_CALLBACK_PORT,
        host: str = IPV4_LOOPBACK,
        ipv6_host: Optional[str] = IPV6_LOOPBACK,
    ) -> None:
        self._expected_state = expected_state
        self._requested_port = port
        self._host = host
        self._ipv6_host = ipv6_host
        self._servers: List[_CallbackServer] = []
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._code: Optional[str] = None
        self._error: Optional[LoginError] = None

    def __enter__(self) -> "CallbackListener":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def port(self) -> int:
        if not self._servers:
            return self._requested_port
        return self._servers[0].server_address[1]

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{CALLBACK_PATH}"

    @property
    def is_serving(self) -> bool:
        return bool(self._servers)

    @property
    def addresses(self) -> List[str]:
        """Hosts currently bound, primary first."""
        return [server.server_address[0] for server in self._servers]

    def start(self) -> None:
        try:
            primary = _CallbackServer((self._host, self._requested_port), self)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise CallbackPortInUseError(self._requested_port) from e
            raise
        self._serve(primary)

        if self._ipv6_host and socket.has_ipv6:
            try:
                secondary = _CallbackServerV6((self._ipv6_host, self.port, 0, 0), self)
            except OSError as e:
                logger.debug("IPv6 loopback unavailable, listening on %s only: %s", self._host, e)
            else:
                self._serve(secondary)
        logger.debug("Callback listener ready on %s (%s)", self.redirect_uri, ", ".join(self.addresses))

    def _serve(self, server: _CallbackServer) -> None:
        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="quant-oauth-callback",
            daemon=True,
        )
        self._servers.append(server)
        self._threads.append(thread)
        thread.start()

    def close(self) -> None:
        servers, self._servers = self._servers, []
        threads, self._threads = self._threads, []
        if not servers:
            return
        for server in servers:
            server.shutdown()
            server.server_close()
        for thread in threads:
            thread.join(timeout=5)
        logger.debug("Callback listener closed")

    def _settle(self, code: Optional[str] = None, error: Optional[LoginError] = None) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self._code = code
            self._error = error
            self._done.set()
            return True

    def handle_callback(self, params: Dict[str, List[str]]) -> Tuple[int, str]:
        """Decide the outcome of one callback request; returns (status, html)."""
        if self._done.is_set():
            return 400, _page("Login Already Completed", "You can close this window.", ok=False)

        error = _first(params, "error")
        if error:
            self._settle(error=AuthorizationDeniedError(error))
            return 400, _page(
                "Authorization Failed",
                f"Error: {html.escape(error)}<br>You can close this window and try again.",
                ok=False,
            )

        if _first(params, "state") != self._expected_state:
            self._settle(error=StateMismatchError())
            return 400, _page("Invalid State", "Security validation failed. Please try again.", ok=False)

        code = _first(params, "code")
        if not code:
            self._settle(error=CallbackError("No authorization code received."))
            return 400, _page("Authorization Failed", "No authorization code received.", ok=False)

        self._settle(code=code)
        return 200, _page(
            "Authorization Successful",
            "You can now close this window and return to the terminal.",
            ok=True,
        )

    def wait(self, timeout: float) -> str:
        """Block until the callback settles; returns the code or raises the failure."""
        if not self._done.wait(timeout):
            raise LoginTimeoutError(timeout)
        if self._error is not None:
            raise self._error
        return self._code


# ── Login flow ───────────────────────────────────────────────────

ClientFactory = Callable[..., QuantCloudClient]


@dataclass
class LoginResult:
    platform: PlatformInfo
    auth_config: AuthConfig
    user: Optional[UserInfo] = None
    expires_in: Optional[int] = None
    already_authenticated: bool = False
    browser_opened: bool = False
    api_check_passed: Optional[bool] = None


class LoginFlow:
    """Acquire and persist a session for one platform."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        port: int = DEFAULT_CALLBACK_PORT,
        timeout: float = DEFAULT_LOGIN_TIMEOUT,
        client_id: str = DEFAULT_CLIENT_ID,
        scopes: Sequence[str] = DEFAULT_SCOPES,
        open_browser: Callable[[str], bool] = webbrowser.open,
        client_factory: ClientFactory = QuantCloudClient,
        on_authorize_url: Optional[Callable[[str], None]] = None,
        listen_host: str = IPV4_LOOPBACK,
    ) -> None:
        self._store = store
        self._port = port
        self._timeout = timeout
        self._client_id = client_id
        self._scopes = tuple(scopes)
        self._open_browser = open_browser
        self._client_factory = client_factory
        self._on_authorize_url = on_authorize_url
        self._listen_host = listen_host

    def run(self, platform: PlatformInfo, force: bool = False) -> LoginResult:
        existing = self._store.get_platform_config(platform.id)
        if not force and existing is not None and existing.is_authenticated():
            logger.debug("Platform '%s' already has a valid token", platform.id)
            return LoginResult(platform=platform, auth_config=existing, already_authenticated=True)

        pkce = generate_pkce()
        state = generate_state()

        with CallbackListener(state, port=self._port, host=self._listen_host) as listener:
            redirect_uri = listener.redirect_uri
            auth_url = build_authorize_url(
                platform.host, redirect_uri, self._client_id, self._scopes, state, pkce
            )
            browser_opened = self._launch_browser(auth_url)
            code = listener.wait(self._timeout)

        token = self._exchange_code(platform.host, code, pkce.verifier, redirect_uri)
        user = self._fetch_user(platform.host, token.access_token)

        auth_config = AuthConfig(
            token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=expiry_from_now(token.expires_in) if token.expires_in else None,
            email=user.email,
            host=platform.host,
            organizations=user.organizations,
            active_organization=user.organizations[0].machine_name if user.organizations else None,
        )
        self._store.save_platform_config(platform.id, auth_config, platform)
        logger.info("Saved credentials for platform '%s' (%s)", platform.id, user.email)

        return LoginResult(
            platform=platform,
            auth_config=auth_config,
            user=user,
            expires_in=token.expires_in,
            browser_opened=browser_opened,
            api_check_passed=self._check_api(platform.host, token.access_token),
        )

    def _launch_browser(self, auth_url: str) -> bool:
        if self._on_authorize_url is not None:
            self._on_authorize_url(auth_url)
        try:
            opened = bool(self._open_browser(auth_url))
        except Exception as e:
            logger.warning("Could not open browser automatically: %s", e)
            return False
        if not opened:
            logger.warning("Could not open browser automatically. Please visit the URL above.")
        return opened

    def _exchange_code(self, host: str, code: str, verifier: str, redirect_uri: str) -> TokenResponse:
        try:
            with self._client_factory(host) as client:
                return client.exchange_code(
                    code=code,
                    code_verifier=verifier,
                    redirect_uri=redirect_uri,
                    client_id=self._client_id,
                )
        except ApiError as e:
            logger.debug("Token endpoint error %s: %r", e.error_code, e.detail)
            raise TokenExchangeError(e.message) from e
        except ValidationError as e:
            raise TokenExchangeError("malformed token response") from e
        except httpx.HTTPError as e:
            raise TokenExchangeError(str(e)) from e

    def _fetch_user(self, host: str, access_token: str) -> UserInfo:
        try:
            with self._client_factory(host, token=access_token) as client:
                return client.get_user_info()
        except ApiError as e:
            raise ProfileFetchError(e.message) from e
        except ValidationError as e:
            raise ProfileFetchError("malformed user info response") from e
        except httpx.HTTPError as e:
            raise ProfileFetchError(str(e)) from e

    def _check_api(self, host: str, access_token: str) -> bool:
        try:
            with self._client_factory(host, token=access_token) as client:
                client.get_user_info()
        except (ApiError, ValidationError, httpx.HTTPError) as e:
            logger.warning("API test failed, but authentication was successful: %s", e)
            return False
        return True
