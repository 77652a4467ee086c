"""quant-cloud env — list, select, show and operate environments."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import List, Optional

import httpx
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table

from quant_cli.core import api
from quant_cli.core.context import (
    SOURCE_STORED,
    overridden_fields,
    resolve_effective_context,
    resolve_selection_context,
    validate_context,
)
from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.errors import QuantCliError
from quant_cli.core.models import AuthConfigUpdate, ContextOverrides, EffectiveContext, parse_timestamp
from quant_sdk.errors import ApiError
from quant_sdk.models import Environment, EnvironmentCreateRequest, LogEntry

console = Console()
logger = logging.getLogger("quant.commands.env")

ENV_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_LEVEL_STYLES = {"error": "red", "critical": "red", "warn": "yellow", "warning": "yellow", "debug": "dim"}

_STATUS_STYLES = {"running": "green", "active": "green", "stopped": "red", "failed": "red"}


def _fetch_environments(context: EffectiveContext) -> List[Environment]:
    with api.client_for_context(context) as client:
        return client.list_environments(context.active_organization, context.active_application)


def _status(environment: Environment) -> str:
    status = environment.status or environment.deployment_status or "unknown"
    style = _STATUS_STYLES.get(status.lower(), "yellow")
    return f"[{style}]{escape(status)}[/{style}]"


def run_list(
    *,
    org: Optional[str] = None,
    app: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    context = resolve_effective_context(ContextOverrides(platform=platform, org=org, app=app), store=store)
    validate_context(context, org=True, app=True)
    environments = _fetch_environments(context)

    if not environments:
        console.print(f"[yellow]No environments found for application '{escape(context.active_application)}'.[/yellow]")
        return 0

    table = Table(title=f"Environments in {escape(context.active_application)}", show_lines=False)
    table.add_column("", width=1)
    table.add_column("Environment", style="cyan")
    table.add_column("Status")
    table.add_column("Tasks", justify="right")
    table.add_column("Capacity", justify="right", style="dim")
    for environment in environments:
        marker = "[green]●[/green]" if environment.env_name == context.active_environment else ""
        capacity = (
            f"{environment.min_capacity}-{environment.max_capacity}"
            if environment.min_capacity is not None and environment.max_capacity is not None
            else "-"
        )
        table.add_row(
            marker,
            escape(environment.env_name),
            _status(environment),
            f"{environment.running_count}/{environment.desired_count}",
            capacity,
        )
    console.print(table)
    return 0


def run_select(
    env_name: Optional[str] = None,
    *,
    org: Optional[str] = None,
    app: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    store = store or get_credential_store()
    context = resolve_selection_context(ContextOverrides(platform=platform, org=org, app=app), store=store)
    validate_context(context, org=True, app=True)
    names = [e.env_name for e in _fetch_environments(context)]

    if not names:
        raise QuantCliError(f"No environments found for application '{context.active_application}'.")

    if env_name is None:
        for name in names:
            current = " [green]- current[/green]" if name == context.active_environment else ""
            console.print(f"  [cyan]{escape(name)}[/cyan]{current}")
        env_name = Prompt.ask("Select environment", choices=names, console=console)

    if env_name not in names:
        raise QuantCliError(
            f"Environment '{env_name}' not found in application '{context.active_application}'.",
            hint="Run `quant-cloud env list` to see available environments.",
        )

    store.save_active_platform_config(AuthConfigUpdate(active_environment=env_name))
    console.print(f"[green]✓ Switched to environment {escape(env_name)}[/green]")
    _note_overrides(context, "organization", "application")
    return 0


def run_current(*, store: Optional[CredentialStore] = None) -> int:
    context = resolve_effective_context(store=store)
    if not context.active_environment:
        console.print("[yellow]No active environment set.[/yellow]")
        console.print("[dim]Use `quant-cloud env select` to choose one.[/dim]")
        return 0

    source = context.sources.get("environment", SOURCE_STORED)
    console.print(f"[bold]Environment:[/bold] [cyan]{escape(context.active_environment)}[/cyan] [dim]({source})[/dim]")
    for label, value in (("Organization", context.active_organization), ("Application", context.active_application)):
        if value:
            console.print(f"  [dim]{label}:[/dim] {escape(value)}")
    return 0


def _note_overrides(context: EffectiveContext, *fields: str) -> None:
    for name, value, source in overridden_fields(context, *fields):
        console.print(
            f"[yellow]Note: {name} '{escape(value)}' comes from the {source} setting; "
            f"the stored {name} is unchanged.[/yellow]"
        )


# ── create / state / logs ────────────────────────────────────────

def run_create(
    env_name: Optional[str] = None,
    *,
    org: Optional[str] = None,
    app: Optional[str] = None,
    platform: Optional[str] = None,
    clone_from: Optional[str] = None,
    min_capacity: int = 1,
    max_capacity: int = 10,
    select: Optional[bool] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    """Create an environment.

    Omitting the name switches to interactive mode, which also asks which
    environment to clone configuration from and whether to select the new one.
    """
    store = store or get_credential_store()
    context = resolve_effective_context(ContextOverrides(platform=platform, org=org, app=app), store=store)
    validate_context(context, org=True, app=True)
    existing = [e.env_name for e in _fetch_environments(context)]

    interactive = env_name is None
    if interactive:
        env_name = Prompt.ask("Environment name", console=console)
    if not ENV_NAME_PATTERN.match(env_name or ""):
        raise QuantCliError(
            f"Invalid environment name '{env_name}'.",
            hint="Use letters, numbers, hyphens and underscores only.",
        )
    if env_name in existing:
        raise QuantCliError(f"Environment '{env_name}' already exists in application '{context.active_application}'.")
    if min_capacity < 1 or max_capacity < min_capacity:
        raise QuantCliError(f"Invalid capacity range {min_capacity}-{max_capacity}.")

    if interactive and clone_from is None and existing:
        choice = Prompt.ask("Clone configuration from", choices=["none"] + existing, default="none", console=console)
        clone_from = None if choice == "none" else choice
    if clone_from and clone_from not in existing:
        raise QuantCliError(
            f"Environment '{clone_from}' not found in application '{context.active_application}'.",
            hint="Run `quant-cloud env list` to see available environments.",
        )

    request = EnvironmentCreateRequest(
        env_name=env_name,
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        clone_configuration_from=clone_from,
    )
    with api.client_for_context(context) as client:
        created = client.create_environment(context.active_organization, context.active_application, request)
    logger.info("Created environment %s in %s/%s", created.env_name, context.active_organization,
                context.active_application)
    console.print(f"[green]✓ Created environment {escape(created.env_name)}[/green]")
    if clone_from:
        console.print(f"  [dim]Configuration cloned from {escape(clone_from)}[/dim]")

    # Selections live on the active platform only.
    if context.platform_id != store.load().active_platform:
        return 0
    if select is None and interactive:
        select = Confirm.ask(f"Set {escape(created.env_name)} as the active environment?", default=True, console=console)
    if select:
        store.save_active_platform_config(AuthConfigUpdate(active_environment=created.env_name))
        console.print(f"[green]✓ Switched to environment {escape(created.env_name)}[/green]")
        _note_overrides(context, "organization", "application")
    return 0


def run_state(
    action: str,
    *,
    env: Optional[str] = None,
    org: Optional[str] = None,
    app: Optional[str] = None,
    platform: Optional[str] = None,
    image_tag: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    context = resolve_effective_context(
        ContextOverrides(platform=platform, org=org, app=app, env=env), store=store
    )
    validate_context(context, org=True, app=True, env=True)

    with api.client_for_context(context) as client:
        client.update_environment_state(
            context.active_organization,
            context.active_application,
            context.active_environment,
            action,
            image_tag=image_tag if action == "redeploy" else None,
        )
    target = f"{context.active_application}/{context.active_environment}"
    console.print(f"[green]✓ {action.capitalize()} operation initiated for {escape(target)}[/green]")
    if action == "redeploy":
        if image_tag:
            console.print(f"  [dim]Image tag: {escape(image_tag)}[/dim]")
        console.print("[dim]Redeployment may take a few minutes to complete.[/dim]")
    else:
        console.print("[dim]Run `quant-cloud env list` to check the environment status.[/dim]")
    return 0


def format_log_entry(entry: LogEntry) -> str:
    """``[HH:MM:SS] LEVEL message`` with rich markup."""
    parsed = parse_timestamp(entry.timestamp) if entry.timestamp else None
    clock = parsed.strftime("%H:%M:%S") if parsed else (entry.timestamp or "--:--:--")
    level = entry.level.lower()
    style = _LEVEL_STYLES.get(level, "blue")
    return f"[dim]\\[{escape(clock)}][/dim] [{style}]{escape(level.upper()):<5}[/{style}] {escape(entry.message)}"


def _newer_than(entries: List[LogEntry], last: datetime) -> List[LogEntry]:
    newer = []
    for entry in entries:
        parsed = parse_timestamp(entry.timestamp) if entry.timestamp else None
        if parsed is not None and parsed > last:
            newer.append(entry)
    return newer


def _latest(entries: List[LogEntry], current: Optional[datetime]) -> Optional[datetime]:
    for entry in entries:
        parsed = parse_timestamp(entry.timestamp) if entry.timestamp else None
        if parsed is not None and (current is None or parsed > current):
            current = parsed
    return current


def run_logs(
    *,
    env: Optional[str] = None,
    org: Optional[str] = None,
    app: Optional[str] = None,
    platform: Optional[str] = None,
    follow: bool = False,
    lines: int = 100,
    poll_interval: float = 2.0,
    max_polls: Optional[int] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    """Print the most recent log lines; with ``follow``, keep polling for new ones.

    Follow mode prints only entries stamped after the newest one already shown.
    Poll failures are reported and polling continues; Ctrl+C stops it.
    """
    context = resolve_effective_context(
        ContextOverrides(platform=platform, org=org, app=app, env=env), store=store
    )
    validate_context(context, org=True, app=True, env=True)
    org_name, app_name, env_name = (
        context.active_organization, context.active_application, context.active_environment
    )

    with api.client_for_context(context) as client:
        entries = client.get_environment_logs(org_name, app_name, env_name)
        shown = entries[-lines:] if lines > 0 else entries
        if not shown and not follow:
            console.print(f"[yellow]No logs found for environment '{escape(env_name)}'.[/yellow]")
            return 0
        for entry in shown:
            console.print(format_log_entry(entry), highlight=False)
        if not follow:
            return 0

        last = _latest(entries, None)
        seen = len(entries)
        console.print(f"[dim]--- Following logs for {escape(app_name)}/{escape(env_name)} (Ctrl+C to stop) ---[/dim]")
        polls = 0
        try:
            while max_polls is None or polls < max_polls:
                time.sleep(poll_interval)
                polls += 1
                try:
                    entries = client.get_environment_logs(org_name, app_name, env_name)
                except (ApiError, httpx.HTTPError) as e:
                    console.print(f"[yellow]Warning: could not fetch logs: {escape(str(e))}[/yellow]")
                    continue
                # Untimestamped sources fall back to position in the returned list.
                fresh = _newer_than(entries, last) if last is not None else entries[seen:]
                for entry in fresh:
                    console.print(format_log_entry(entry), highlight=False)
                last = _latest(entries, last)
                seen = len(entries)
        except KeyboardInterrupt:
            console.print("\n[dim]--- Log tailing stopped ---[/dim]")
    return 0
