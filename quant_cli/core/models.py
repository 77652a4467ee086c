"""Data models for credentials, project overrides and the resolved context.

Persisted records are pydantic models whose aliases match the on-disk JSON
(camelCase keys, ``platformInfo`` nested per platform). Unknown keys are kept
so a record read from disk is written back unchanged. Per-invocation values
(``ProjectConfig``, ``EffectiveContext``, ...) are plain dataclasses.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from quant_sdk.models import Organization

logger = logging.getLogger("quant.models")


# ── Timestamps ───────────────────────────────────────────────────

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def expiry_from_now(expires_in: int, now: Optional[datetime] = None) -> str:
    return format_timestamp((now or utcnow()) + timedelta(seconds=expires_in))


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Persisted records ────────────────────────────────────────────

class PlatformInfo(BaseModel):
    """Identity of one API deployment. ``id`` is derived from ``host``."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    host: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AuthConfig(BaseModel):
    """One authenticated session against one platform."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    token: Optional[str] = None
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    email: Optional[str] = None
    host: str
    organizations: Optional[List[Organization]] = None
    active_organization: Optional[str] = Field(default=None, alias="activeOrganization")
    active_application: Optional[str] = Field(default=None, alias="activeApplication")
    active_environment: Optional[str] = Field(default=None, alias="activeEnvironment")
    active_project: Optional[str] = Field(default=None, alias="activeProject")

    def expiry(self) -> Optional[datetime]:
        if not self.expires_at:
            return None
        parsed = parse_timestamp(self.expires_at)
        if parsed is None:
            logger.debug("Ignoring unparseable expiresAt value: %r", self.expires_at)
        return parsed

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expiry = self.expiry()
        if expiry is None:
            return False
        return (now or utcnow()) >= expiry

    def is_authenticated(self, now: Optional[datetime] = None) -> bool:
        return bool(self.token) and not self.is_expired(now)

    def find_organization(self, key: str) -> Optional[Organization]:
        """Look up a cached organization by machine name or numeric id."""
        for org in self.organizations or []:
            if org.machine_name == key or str(org.id) == key:
                return org
        return None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PlatformRecord(AuthConfig):
    """A stored platform entry: the session plus its platform identity."""

    platform_info: PlatformInfo = Field(alias="platformInfo")

    @classmethod
    def build(cls, auth_config: AuthConfig, platform_info: PlatformInfo) -> "PlatformRecord":
        return cls.model_validate({**auth_config.to_dict(), "platformInfo": platform_info.to_dict()})

    def auth_config(self) -> AuthConfig:
        """The session fields alone, ``platformInfo`` stripped."""
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"platform_info"})
        return AuthConfig.model_validate(data)


class AuthConfigUpdate(BaseModel):
    """Partial update of a stored session.

    Only fields passed explicitly are merged; passing ``None`` clears the stored
    value. ``platformInfo`` is not part of the mergeable set.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    token: Optional[str] = None
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    email: Optional[str] = None
    host: Optional[str] = None
    organizations: Optional[List[Organization]] = None
    active_organization: Optional[str] = Field(default=None, alias="activeOrganization")
    active_application: Optional[str] = Field(default=None, alias="activeApplication")
    active_environment: Optional[str] = Field(default=None, alias="activeEnvironment")
    active_project: Optional[str] = Field(default=None, alias="activeProject")

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set}


class MultiPlatformConfig(BaseModel):
    """The whole credential file."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    active_platform: Optional[str] = Field(default=None, alias="activePlatform")
    platforms: Dict[str, PlatformRecord] = Field(default_factory=dict)
    # Entries that failed validation, written back untouched.
    _unreadable: Dict[str, Any] = PrivateAttr(default_factory=dict)

    def active_record(self) -> Optional[PlatformRecord]:
        if not self.active_platform:
            return None
        return self.platforms.get(self.active_platform)

    @property
    def unreadable(self) -> Dict[str, Any]:
        return self._unreadable

    def has_platform(self, platform_id: str) -> bool:
        return platform_id in self.platforms or platform_id in self._unreadable

    def platform_ids(self) -> List[str]:
        return list(self.platforms) + [pid for pid in self._unreadable if pid not in self.platforms]

    def discard(self, platform_id: str) -> None:
        self.platforms.pop(platform_id, None)
        self._unreadable.pop(platform_id, None)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        for pid, entry in self._unreadable.items():
            if pid not in self.platforms:
                data["platforms"][pid] = entry
        return data


# ── Per-invocation values ────────────────────────────────────────

@dataclass
class LoadResult:
    """Outcome of reading the credential file.

    ``degraded`` is set when a file existed but could not be used; the config
    is then empty and ``reason`` says why.
    """

    config: MultiPlatformConfig
    degraded: bool = False
    reason: Optional[str] = None
    migrated: bool = False
    skipped: List[str] = field(default_factory=list)


@dataclass
class PlatformEntry:
    id: str
    info: PlatformInfo
    is_active: bool


@dataclass
class ProjectConfig:
    """Overrides read from a project's ``.quant.yml``."""

    platform: Optional[str] = None
    org: Optional[str] = None
    app: Optional[str] = None
    env: Optional[str] = None

    def as_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def is_empty(self) -> bool:
        return not self.as_dict()


@dataclass
class ContextOverrides:
    """Values given explicitly on the command line."""

    platform: Optional[str] = None
    org: Optional[str] = None
    app: Optional[str] = None
    env: Optional[str] = None

    def as_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}


@dataclass
class EffectiveContext:
    """Identity plus navigation for one command invocation. Never persisted."""

    token: str
    host: str
    platform_id: Optional[str] = None
    email: Optional[str] = None
    expires_at: Optional[str] = None
    organizations: Optional[List[Organization]] = None
    active_organization: Optional[str] = None
    active_application: Optional[str] = None
    active_environment: Optional[str] = None
    active_project: Optional[str] = None
    sources: Dict[str, str] = field(default_factory=dict)
