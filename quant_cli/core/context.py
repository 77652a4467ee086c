"""Effective context resolution.

Each command invocation layers three sources, highest priority first:

  1. command-line overrides (``--platform/--org/--app/--env``)
  2. the nearest project ``.quant.yml``
  3. the stored session of the selected platform

Identity fields (token, host, email, expiry, cached organizations) and the
active project always come from the stored session; only organization,
application and environment are layered.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.errors import (
    MissingApplicationError,
    MissingEnvironmentError,
    MissingOrganizationError,
    NoActivePlatformError,
    NotAuthenticatedError,
    QuantCliError,
    UnknownPlatformError,
)
from quant_cli.core.models import AuthConfig, ContextOverrides, EffectiveContext, ProjectConfig
from quant_cli.core.project_config import get_project_config

logger = logging.getLogger("quant.context")

SOURCE_CLI = "cli"
SOURCE_PROJECT = "project"
SOURCE_STORED = "stored"


def _pick(*candidates: Tuple[Optional[str], str]) -> Tuple[Optional[str], Optional[str]]:
    """First non-empty value and the name of the layer that supplied it."""
    for value, source in candidates:
        if value:
            return value, source
    return None, None


def _select_platform(
    store: CredentialStore,
    overrides: ContextOverrides,
    project: ProjectConfig,
) -> Tuple[Optional[str], Optional[AuthConfig]]:
    requested, source = _pick((overrides.platform, SOURCE_CLI), (project.platform, SOURCE_PROJECT))
    config = store.load()

    if requested is None:
        record = config.active_record()
        return config.active_platform, record.auth_config() if record else None

    record = config.platforms.get(requested)
    if record is None:
        raise UnknownPlatformError(requested, config.platforms)
    logger.debug("Using platform '%s' from %s", requested, source)
    return requested, record.auth_config()


def resolve_effective_context(
    overrides: Optional[ContextOverrides] = None,
    *,
    store: Optional[CredentialStore] = None,
    start_dir: Optional[Union[str, Path]] = None,
) -> EffectiveContext:
    """Build the context for one invocation.

    Raises ``NotAuthenticatedError`` when the selected platform has no token and
    ``UnknownPlatformError`` when an explicitly named platform is not stored.
    """
    overrides = overrides or ContextOverrides()
    store = store or get_credential_store()
    project = get_project_config(start_dir)

    platform_id, auth = _select_platform(store, overrides, project)
    if auth is None or not auth.token:
        raise NotAuthenticatedError()

    org, org_src = _pick(
        (overrides.org, SOURCE_CLI), (project.org, SOURCE_PROJECT), (auth.active_organization, SOURCE_STORED)
    )
    app, app_src = _pick(
        (overrides.app, SOURCE_CLI), (project.app, SOURCE_PROJECT), (auth.active_application, SOURCE_STORED)
    )
    env, env_src = _pick(
        (overrides.env, SOURCE_CLI), (project.env, SOURCE_PROJECT), (auth.active_environment, SOURCE_STORED)
    )
    sources = {
        name: src
        for name, src in (("organization", org_src), ("application", app_src), ("environment", env_src))
        if src
    }

    context = EffectiveContext(
        token=auth.token,
        host=auth.host,
        platform_id=platform_id,
        email=auth.email,
        expires_at=auth.expires_at,
        organizations=auth.organizations,
        active_organization=org,
        active_application=app,
        active_environment=env,
        active_project=auth.active_project,
        sources=sources,
    )

    layered = {k: v for k, v in sources.items() if v != SOURCE_STORED}
    if layered:
        logger.debug(
            "Context sources: %s",
            ", ".join(f"{field}<-{src}" for field, src in sorted(layered.items())),
        )
        logger.debug("Effective context: org=%s, app=%s, env=%s", org, app, env)
    return context


def missing_context_fields(
    context: EffectiveContext,
    *,
    org: bool = False,
    app: bool = False,
    env: bool = False,
) -> List[str]:
    missing = []
    if org and not context.active_organization:
        missing.append("organization")
    if app and not context.active_application:
        missing.append("application")
    if env and not context.active_environment:
        missing.append("environment")
    return missing


_MISSING_ERRORS = {
    "organization": MissingOrganizationError,
    "application": MissingApplicationError,
    "environment": MissingEnvironmentError,
}


def validate_context(
    context: EffectiveContext,
    *,
    org: bool = False,
    app: bool = False,
    env: bool = False,
) -> None:
    """Raise the field-specific error for the first required field that is unset."""
    missing = missing_context_fields(context, org=org, app=app, env=env)
    if missing:
        raise _MISSING_ERRORS[missing[0]]()


def resolve_selection_context(
    overrides: Optional[ContextOverrides] = None,
    *,
    store: Optional[CredentialStore] = None,
    start_dir: Optional[Union[str, Path]] = None,
) -> EffectiveContext:
    """Context for ``select`` commands, pinned to the active platform.

    Selections are persisted on the active platform, so a platform named on
    the command line must be that platform. A project ``platform`` key is
    ignored here for the same reason.
    """
    overrides = overrides or ContextOverrides()
    store = store or get_credential_store()
    config = store.load()

    if not config.platforms:
        raise NotAuthenticatedError()
    if config.active_record() is None:
        raise NoActivePlatformError()
    if overrides.platform and overrides.platform != config.active_platform:
        raise QuantCliError(
            f"Selections are saved on the active platform ('{config.active_platform}'), "
            f"not '{overrides.platform}'.",
            hint=f"Run `quant-cloud platform switch {overrides.platform}` first.",
        )

    pinned = ContextOverrides(
        platform=config.active_platform, org=overrides.org, app=overrides.app, env=overrides.env
    )
    return resolve_effective_context(pinned, store=store, start_dir=start_dir)


def overridden_fields(context: EffectiveContext, *fields: str) -> List[Tuple[str, str, str]]:
    """``(field, value, source)`` for each of ``fields`` supplied by a CLI or project override."""
    values = {
        "organization": context.active_organization,
        "application": context.active_application,
        "environment": context.active_environment,
    }
    return [
        (name, values[name], context.sources[name])
        for name in fields
        if context.sources.get(name) not in (None, SOURCE_STORED)
    ]
