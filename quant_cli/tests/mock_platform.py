"""In-memory Quant platform for tests.

A small FastAPI app implementing the OAuth authorize/token endpoints (with
PKCE verification), the user-info endpoint, the v3 application and
environment API and the v2 project listing. It is served through
starlette's ``TestClient``, which is an ``httpx.Client``.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlencode

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.testclient import TestClient as StarletteTestClient

from quant_cli.core.credentials import CredentialStore
from quant_cli.core.models import AuthConfig, PlatformInfo
from quant_sdk import QuantCloudClient

ORGANIZATIONS = [
    {"id": 1, "name": "Acme Corp", "machine_name": "acme", "roles": [{"name": "owner", "display_name": "Owner"}]},
    {"id": 2, "name": "Globex", "machine_name": "globex", "roles": [{"name": "developer"}]},
]


class MockPlatform:
    """In-memory Quant platform: OAuth endpoints plus the v2 and v3 resource API."""

    def __init__(self) -> None:
        self.email = "dev@example.com"
        self.organizations: List[Dict[str, Any]] = [dict(o) for o in ORGANIZATIONS]
        self.applications: Dict[str, List[Dict[str, Any]]] = {
            "acme": [
                {"appName": "web", "environments": [{"envName": "production"}, {"envName": "staging"}]},
                {"appName": "api", "environments": []},
            ],
            "globex": [],
        }
        self.environments: Dict[tuple, List[Dict[str, Any]]] = {
            ("acme", "web"): [
                {"envName": "production", "status": "running", "runningCount": 2, "desiredCount": 2,
                 "minCapacity": 1, "maxCapacity": 4},
                {"envName": "staging", "status": "stopped", "runningCount": 0, "desiredCount": 0},
            ],
        }
        self.projects: Dict[str, List[Dict[str, Any]]] = {
            "acme": [
                {"id": 11, "name": "Site A", "machine_name": "site-a", "domain": "site-a.example.com",
                 "region": "ap-southeast-2"},
                {"id": 12, "name": "Site B", "machine_name": "site-b"},
            ],
            "globex": [],
        }
        self.logs: Dict[tuple, List[Any]] = {
            ("acme", "web", "production"): [
                {"timestamp": "2026-10-19T09:00:01Z", "level": "info", "message": "Booting"},
                {"timestamp": "2026-10-19T09:00:02Z", "level": "error", "message": "Cache miss storm"},
            ],
        }
        self.create_requests: List[Dict[str, Any]] = []
        self.state_requests: List[Dict[str, Any]] = []
        self.log_requests = 0
        self.valid_tokens = {"stored-token"}
        self.grants: Dict[str, Dict[str, str]] = {}
        self.token_requests: List[Dict[str, str]] = []
        self.user_requests = 0
        self.deny_with: Optional[str] = None
        self.expires_in: Optional[int] = 3600
        self.app = self._build()

    @staticmethod
    def challenge_for(verifier: str) -> str:
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def _authorized(self, request: Request) -> bool:
        header = request.headers.get("authorization", "")
        return header.startswith("Bearer ") and header[len("Bearer "):] in self.valid_tokens

    def _build(self) -> FastAPI:
        api = FastAPI()
        unauthorized = {"message": "Unauthenticated."}

        @api.get("/oauth/authorize")
        def authorize(request: Request):
            q = request.query_params
            if self.deny_with:
                params = {"error": self.deny_with, "state": q["state"]}
            else:
                code = secrets.token_hex(8)
                self.grants[code] = {
                    "challenge": q["code_challenge"],
                    "method": q["code_challenge_method"],
                    "redirect_uri": q["redirect_uri"],
                    "client_id": q["client_id"],
                }
                params = {"code": code, "state": q["state"]}
            return RedirectResponse(f"{q['redirect_uri']}?{urlencode(params)}", status_code=302)

        @api.post("/oauth/token")
        async def token(request: Request):
            form = {k: v[0] for k, v in parse_qs((await request.body()).decode()).items()}
            self.token_requests.append(form)
            grant = self.grants.pop(form.get("code", ""), None)
            if grant is None or form.get("grant_type") != "authorization_code":
                return JSONResponse({"error": "invalid_grant", "error_description": "Unknown authorization code"}, 400)
            if self.challenge_for(form.get("code_verifier", "")) != grant["challenge"]:
                return JSONResponse({"error": "invalid_grant", "error_description": "PKCE verification failed"}, 400)
            if form.get("redirect_uri") != grant["redirect_uri"] or form.get("client_id") != grant["client_id"]:
                return JSONResponse({"error": "invalid_grant", "error_description": "Redirect URI mismatch"}, 400)
            access_token = f"access-{secrets.token_hex(6)}"
            self.valid_tokens.add(access_token)
            body = {"access_token": access_token, "refresh_token": "refresh-1", "token_type": "Bearer"}
            if self.expires_in is not None:
                body["expires_in"] = self.expires_in
            return body

        @api.get("/api/oauth/user")
        def user(request: Request):
            self.user_requests += 1
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            return {"id": 42, "email": self.email, "name": "Dev", "organizations": self.organizations}

        @api.get("/api/v3/organizations/{org}/applications")
        def applications(org: str, request: Request):
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if org not in self.applications:
                return JSONResponse({"message": f"Organization {org} not found"}, 404)
            return self.applications[org]

        @api.get("/api/v3/organizations/{org}/applications/{app}/environments")
        def environments(org: str, app: str, request: Request):
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if (org, app) not in self.environments:
                return JSONResponse({"message": f"Application {app} not found"}, 404)
            return self.environments[(org, app)]

        @api.post("/api/v3/organizations/{org}/applications/{app}/environments")
        async def create_environment(org: str, app: str, request: Request):
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if (org, app) not in self.environments:
                return JSONResponse({"message": f"Application {app} not found"}, 404)
            body = await request.json()
            self.create_requests.append(body)
            existing = [e["envName"] for e in self.environments[(org, app)]]
            if body.get("envName") in existing:
                return JSONResponse({"message": f"Environment {body['envName']} already exists"}, 422)
            created = {
                "envName": body["envName"], "status": "creating", "runningCount": 0, "desiredCount": 0,
                "minCapacity": body.get("minCapacity"), "maxCapacity": body.get("maxCapacity"),
            }
            self.environments[(org, app)].append(created)
            return JSONResponse(created, 201)

        @api.put("/api/v3/organizations/{org}/applications/{app}/environments/{env}/state")
        async def environment_state(org: str, app: str, env: str, request: Request):
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if env not in [e["envName"] for e in self.environments.get((org, app), [])]:
                return JSONResponse({"message": f"Environment {env} not found"}, 404)
            self.state_requests.append({"env": env, **(await request.json())})
            return JSONResponse({"message": "accepted"}, 202)

        @api.get("/api/v3/organizations/{org}/applications/{app}/environments/{env}/logs")
        def environment_logs(org: str, app: str, env: str, request: Request):
            self.log_requests += 1
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if (org, app, env) not in self.logs:
                return JSONResponse({"message": f"Environment {env} not found"}, 404)
            return self.logs[(org, app, env)]

        @api.get("/api/v2/organizations/{org}/projects")
        def projects(org: str, request: Request):
            if not self._authorized(request):
                return JSONResponse(unauthorized, 401)
            if org not in self.projects:
                return JSONResponse({"message": f"Organization {org} not found"}, 404)
            return self.projects[org]

        return api


def make_client_factory(platform: MockPlatform):
    """Drop-in for ``quant_cli.core.api.make_client`` backed by ``platform``."""

    def factory(host: str, token: Optional[str] = None) -> QuantCloudClient:
        inner = StarletteTestClient(platform.app, base_url=host)
        return QuantCloudClient(base_url=host, token=token, client=inner)

    return factory


class FakeBrowser:
    """Plays the user's browser: follows the authorize redirect to the loopback listener."""

    def __init__(self, platform: MockPlatform, rewrite=None, open_result: bool = True) -> None:
        self.platform = platform
        self.rewrite = rewrite
        self.open_result = open_result
        self.urls: List[str] = []
        self.callback_response: Optional[httpx.Response] = None

    def __call__(self, url: str) -> bool:
        self.urls.append(url)
        authorize = StarletteTestClient(self.platform.app).get(url, follow_redirects=False)
        location = authorize.headers["location"]
        if self.rewrite is not None:
            location = self.rewrite(location)
        self.callback_response = httpx.get(location, trust_env=False, timeout=5)
        return self.open_result


def make_platform(platform_id: str, host: Optional[str] = None, name: Optional[str] = None) -> PlatformInfo:
    host = host or f"https://{platform_id}.example.test"
    return PlatformInfo(id=platform_id, name=name or platform_id.title(), host=host, description=host)


def make_auth(host: str = "https://acme.example.test", **fields) -> AuthConfig:
    data = {
        "token": "stored-token",
        "email": "dev@example.com",
        "host": host,
        "organizations": ORGANIZATIONS,
        "activeOrganization": "acme",
    }
    data.update(fields)
    return AuthConfig.model_validate(data)


def add_platform(store: CredentialStore, platform_id: str, **fields) -> PlatformInfo:
    info = make_platform(platform_id)
    store.save_platform_config(platform_id, make_auth(host=info.host, **fields), info)
    return info


