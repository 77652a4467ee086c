"""Pydantic response models for the Quant Cloud SDK.

These mirror the platform's OAuth and v3 API payloads so callers get typed
access to fields. Unknown fields are kept so records round-trip unchanged.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ── OAuth ────────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = "Bearer"


class Role(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    display_name: Optional[str] = None


class Organization(BaseModel):
    """An organization membership as reported by the user-info endpoint.

    ``machine_name`` is the stable key used everywhere else in the CLI.
    """

    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name: str
    machine_name: str
    roles: List[Role] = Field(default_factory=list)

    @property
    def role_names(self) -> str:
        return ", ".join(r.display_name or r.name for r in self.roles)


class UserInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Union[int, str]] = None
    email: str
    name: str = ""
    organizations: List[Organization] = Field(default_factory=list)
    scope: Optional[str] = None
    created_at: Optional[str] = None


# ── Applications / Environments ──────────────────────────────────

class Environment(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    env_name: str = Field(alias="envName")
    status: Optional[str] = None
    deployment_status: Optional[str] = Field(default=None, alias="deploymentStatus")
    running_count: int = Field(default=0, alias="runningCount")
    desired_count: int = Field(default=0, alias="desiredCount")
    min_capacity: Optional[int] = Field(default=None, alias="minCapacity")
    max_capacity: Optional[int] = Field(default=None, alias="maxCapacity")


class Application(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    app_name: str = Field(alias="appName")
    environments: List[Environment] = Field(default_factory=list)


class EnvironmentCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    env_name: str = Field(alias="envName")
    min_capacity: int = Field(default=1, alias="minCapacity")
    max_capacity: int = Field(default=10, alias="maxCapacity")
    clone_configuration_from: Optional[str] = Field(default=None, alias="cloneConfigurationFrom")


class LogEntry(BaseModel):
    """One environment log line. Field names vary between log sources."""

    model_config = ConfigDict(extra="allow")

    timestamp: Optional[str] = None
    message: str = ""
    level: str = "info"

    @classmethod
    def from_raw(cls, raw: Any) -> "LogEntry":
        if not isinstance(raw, dict):
            return cls(message=str(raw))
        timestamp = raw.get("timestamp") or raw.get("time") or raw.get("created_at")
        message = raw.get("message") or raw.get("msg") or raw.get("log") or ""
        level = raw.get("level") or raw.get("severity") or "info"
        extra = {k: v for k, v in raw.items() if k not in ("timestamp", "message", "level")}
        return cls(
            **extra,
            timestamp=str(timestamp) if timestamp is not None else None,
            message=str(message),
            level=str(level),
        )


# ── Projects ─────────────────────────────────────────────────────

class Project(BaseModel):
    """A static-hosting project (v2 API)."""

    model_config = ConfigDict(extra="allow")

    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    machine_name: str
    domain: Optional[str] = None
    url: Optional[str] = None
    aws_cloudfront_domain_name: Optional[str] = None
    region: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.machine_name

    @property
    def public_domain(self) -> Optional[str]:
        return self.domain or self.url or self.aws_cloudfront_domain_name

    def matches(self, key: str) -> bool:
        return key in (self.machine_name, self.name)
