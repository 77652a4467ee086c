"""QuantCloudClient — typed Python SDK for the Quant Cloud platform API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from quant_sdk.auth import build_auth_headers
from quant_sdk.errors import error_class_for_status
from quant_sdk.models import (
    Application,
    Environment,
    EnvironmentCreateRequest,
    LogEntry,
    Project,
    TokenResponse,
    UserInfo,
)
from quant_sdk.utils import generate_request_id

ENVIRONMENT_ACTIONS = ("stop", "start", "redeploy")


class QuantCloudClient:
    """Synchronous client for the Quant Cloud platform API.

    Usage::

        from quant_sdk import QuantCloudClient

        with QuantCloudClient(base_url="https://dashboard.quantcdn.io", token="...") as c:
            me = c.get_user_info()
            print(me.email, [o.machine_name for o in me.organizations])

    ``client`` lets callers supply a preconfigured ``httpx.Client`` (for
    example a starlette ``TestClient``) instead of opening a new one.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = client or httpx.Client(base_url=self._base_url, timeout=self._timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    # ── Internal helpers ─────────────────────────────────────────

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {"Accept": "application/json"}
        headers.update(build_auth_headers(self._token))
        if extra:
            headers.update(extra)
        if "x-request-id" not in {k.lower() for k in headers}:
            headers["X-Request-ID"] = generate_request_id()
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _environments_path(organization: str, application: str) -> str:
        return (
            f"/api/v3/organizations/{quote(organization, safe='')}"
            f"/applications/{quote(application, safe='')}/environments"
        )

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        error_code = None
        if isinstance(body, dict):
            # OAuth errors: {"error": "invalid_grant", "error_description": "..."}
            err = body.get("error")
            if isinstance(err, dict):
                message = err.get("message", str(body))
            else:
                error_code = err if isinstance(err, str) else None
                message = (
                    body.get("error_description")
                    or err
                    or body.get("message")
                    or body.get("detail")
                    or str(body)
                )
        else:
            message = str(body) if body else ""
        if not message:
            message = f"HTTP {resp.status_code}: {resp.reason_phrase}"

        raise error_class_for_status(resp.status_code)(
            resp.status_code,
            str(message),
            detail=body,
            request_id=resp.headers.get("x-request-id"),
            error_code=error_code,
        )

    def _get(self, path: str, **kwargs) -> httpx.Response:
        headers = self._headers(kwargs.pop("headers", None))
        resp = self._client.get(self._url(path), headers=headers, **kwargs)
        self._raise_for_status(resp)
        return resp

    def _post_form(self, path: str, data: Dict[str, Any], **kwargs) -> httpx.Response:
        headers = self._headers(kwargs.pop("headers", None))
        resp = self._client.post(self._url(path), data=data, headers=headers, **kwargs)
        self._raise_for_status(resp)
        return resp

    def _send_json(self, method: str, path: str, body: Dict[str, Any], **kwargs) -> httpx.Response:
        headers = self._headers(kwargs.pop("headers", None))
        resp = self._client.request(method, self._url(path), json=body, headers=headers, **kwargs)
        self._raise_for_status(resp)
        return resp

    # ── OAuth ────────────────────────────────────────────────────

    def exchange_code(
        self,
        *,
        code: str,
        code_verifier: str,
        redirect_uri: str,
        client_id: str,
    ) -> TokenResponse:
        """POST /oauth/token (authorization_code grant, form encoded)."""
        resp = self._post_form(
            "/oauth/token",
            data={
                "grant_type": "authorization_code",
                "client_id": client_id,
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
        )
        return TokenResponse(**resp.json())

    def get_user_info(self) -> UserInfo:
        """GET /api/oauth/user"""
        resp = self._get("/api/oauth/user")
        return UserInfo(**resp.json())

    # ── v3 API ───────────────────────────────────────────────────

    def list_applications(self, organization: str) -> List[Application]:
        """GET /api/v3/organizations/{org}/applications"""
        resp = self._get(f"/api/v3/organizations/{quote(organization, safe='')}/applications")
        return [Application(**item) for item in resp.json()]

    def list_environments(self, organization: str, application: str) -> List[Environment]:
        """GET /api/v3/organizations/{org}/applications/{app}/environments"""
        resp = self._get(self._environments_path(organization, application))
        return [Environment(**item) for item in resp.json()]

    def create_environment(
        self,
        organization: str,
        application: str,
        request: EnvironmentCreateRequest,
    ) -> Environment:
        """POST /api/v3/organizations/{org}/applications/{app}/environments"""
        resp = self._send_json(
            "POST",
            self._environments_path(organization, application),
            request.model_dump(by_alias=True, exclude_none=True),
        )
        return Environment(**resp.json())

    def update_environment_state(
        self,
        organization: str,
        application: str,
        environment: str,
        action: str,
        image_tag: Optional[str] = None,
    ) -> None:
        """PUT .../environments/{env}/state with ``action`` stop, start or redeploy."""
        if action not in ENVIRONMENT_ACTIONS:
            raise ValueError(f"Unknown environment action: {action!r}")
        body: Dict[str, Any] = {"action": action}
        if image_tag:
            body["imageTag"] = image_tag
        path = f"{self._environments_path(organization, application)}/{quote(environment, safe='')}/state"
        self._send_json("PUT", path, body)

    def get_environment_logs(self, organization: str, application: str, environment: str) -> List[LogEntry]:
        """GET .../environments/{env}/logs

        The endpoint has returned a bare list, ``{"logs": [...]}``, a single
        entry or plain text over time; all are normalized to a list.
        """
        path = f"{self._environments_path(organization, application)}/{quote(environment, safe='')}/logs"
        resp = self._get(path)
        try:
            body = resp.json()
        except ValueError:
            text = resp.text.strip()
            return [LogEntry(message=line) for line in text.splitlines()] if text else []
        return [LogEntry.from_raw(item) for item in _log_items(body)]

    # ── v2 API ───────────────────────────────────────────────────

    def list_projects(self, organization: str) -> List[Project]:
        """GET /api/v2/organizations/{org}/projects"""
        resp = self._get(f"/api/v2/organizations/{quote(organization, safe='')}/projects")
        body = resp.json()
        if isinstance(body, dict):
            body = body.get("data") or body.get("projects") or []
        return [Project(**item) for item in body]

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _log_items(body: Any) -> List[Any]:
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        if isinstance(body.get("logs"), list):
            return body["logs"]
        if body.get("message") or body.get("timestamp"):
            return [body]
        return []
    if isinstance(body, str) and body:
        return [body]
    return []
