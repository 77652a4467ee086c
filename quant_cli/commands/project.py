"""quant-cloud project — list, select and show static-hosting projects."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from quant_cli.core import api
from quant_cli.core.context import (
    resolve_effective_context,
    resolve_selection_context,
    validate_context,
)
from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.errors import QuantCliError
from quant_cli.core.models import AuthConfigUpdate, ContextOverrides, EffectiveContext
from quant_sdk.errors import ApiError
from quant_sdk.models import Project

console = Console()
logger = logging.getLogger("quant.commands.project")


def _fetch_projects(context: EffectiveContext) -> List[Project]:
    with api.client_for_context(context) as client:
        return client.list_projects(context.active_organization)


def run_list(
    *,
    org: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    context = resolve_effective_context(ContextOverrides(platform=platform, org=org), store=store)
    validate_context(context, org=True)
    projects = _fetch_projects(context)

    if not projects:
        console.print(f"[yellow]No projects found in organization '{escape(context.active_organization)}'.[/yellow]")
        return 0

    table = Table(title=f"Projects in {escape(context.active_organization)}", show_lines=False)
    table.add_column("", width=1)
    table.add_column("Project", style="cyan")
    table.add_column("Machine name", style="dim")
    table.add_column("Domain")
    for project in projects:
        marker = "[green]●[/green]" if project.machine_name == context.active_project else ""
        table.add_row(
            marker,
            escape(project.display_name),
            escape(project.machine_name),
            escape(project.public_domain or "-"),
        )
    console.print(table)
    return 0


def run_select(
    project_name: Optional[str] = None,
    *,
    org: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    store = store or get_credential_store()
    context = resolve_selection_context(ContextOverrides(platform=platform, org=org), store=store)
    validate_context(context, org=True)
    projects = _fetch_projects(context)

    if not projects:
        raise QuantCliError(f"No projects found in organization '{context.active_organization}'.")

    if project_name is None:
        if len(projects) == 1:
            project_name = projects[0].machine_name
            console.print(f"[dim]Only one project available: {escape(projects[0].display_name)}[/dim]")
        else:
            names = [p.machine_name for p in projects]
            for project in projects:
                current = " [green]- current[/green]" if project.machine_name == context.active_project else ""
                console.print(
                    f"  [cyan]{escape(project.machine_name)}[/cyan] [dim]{escape(project.display_name)}[/dim]{current}"
                )
            project_name = Prompt.ask("Select project", choices=names, console=console)

    selected = next((p for p in projects if p.matches(project_name)), None)
    if selected is None:
        available = ", ".join(p.machine_name for p in projects)
        raise QuantCliError(
            f"Project '{project_name}' not found in organization '{context.active_organization}' "
            f"(available: {available}).",
            hint="Run `quant-cloud project list` to see available projects.",
        )

    store.save_active_platform_config(AuthConfigUpdate(active_project=selected.machine_name))
    console.print(f"[green]✓ Switched to project {escape(selected.display_name)}[/green]")
    return 0


def run_current(*, store: Optional[CredentialStore] = None) -> int:
    context = resolve_effective_context(store=store)
    if not context.active_project:
        console.print("[yellow]No active project set.[/yellow]")
        console.print("[dim]Use `quant-cloud project select` to choose one.[/dim]")
        return 0

    project = None
    if context.active_organization:
        try:
            project = next((p for p in _fetch_projects(context) if p.matches(context.active_project)), None)
        except (ApiError, httpx.HTTPError) as e:
            logger.debug("Could not fetch project details: %s", e)

    if project is None:
        console.print(f"[bold]Project:[/bold] [cyan]{escape(context.active_project)}[/cyan]")
        console.print("[dim]Details unavailable; showing the stored selection.[/dim]")
        return 0

    console.print(f"[bold]Project:[/bold] [cyan]{escape(project.display_name)}[/cyan]")
    console.print(f"  [dim]Machine name:[/dim] {escape(project.machine_name)}")
    if project.public_domain:
        console.print(f"  [dim]URL:[/dim] {escape(project.public_domain)}")
    if project.region:
        console.print(f"  [dim]Region:[/dim] {escape(project.region)}")
    if context.active_organization:
        console.print(f"  [dim]Organization:[/dim] {escape(context.active_organization)}")
    return 0
