"""quant-cloud app — list, select and show applications."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
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
from quant_cli.core.models import AuthConfigUpdate, ContextOverrides, EffectiveContext
from quant_sdk.models import Application

console = Console()


def _fetch_applications(context: EffectiveContext) -> List[Application]:
    with api.client_for_context(context) as client:
        return client.list_applications(context.active_organization)


def _env_summary(app: Application, limit: int = 3) -> str:
    names = [e.env_name for e in app.environments]
    if not names:
        return "-"
    shown = ", ".join(names[:limit])
    return shown + (f" (+{len(names) - limit})" if len(names) > limit else "")


def run_list(
    *,
    org: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    context = resolve_effective_context(ContextOverrides(platform=platform, org=org), store=store)
    validate_context(context, org=True)
    applications = _fetch_applications(context)

    if not applications:
        console.print(f"[yellow]No applications found in organization '{escape(context.active_organization)}'.[/yellow]")
        return 0

    table = Table(title=f"Applications in {escape(context.active_organization)}", show_lines=False)
    table.add_column("", width=1)
    table.add_column("Application", style="cyan")
    table.add_column("Environments")
    for application in applications:
        marker = "[green]●[/green]" if application.app_name == context.active_application else ""
        table.add_row(marker, escape(application.app_name), escape(_env_summary(application)))
    console.print(table)
    return 0


def run_select(
    app_name: Optional[str] = None,
    *,
    org: Optional[str] = None,
    platform: Optional[str] = None,
    store: Optional[CredentialStore] = None,
) -> int:
    store = store or get_credential_store()
    context = resolve_selection_context(ContextOverrides(platform=platform, org=org), store=store)
    validate_context(context, org=True)
    applications = _fetch_applications(context)
    names = [a.app_name for a in applications]

    if not names:
        raise QuantCliError(f"No applications found in organization '{context.active_organization}'.")

    if app_name is None:
        for name in names:
            current = " [green]- current[/green]" if name == context.active_application else ""
            console.print(f"  [cyan]{escape(name)}[/cyan]{current}")
        app_name = Prompt.ask("Select application", choices=names, console=console)

    if app_name not in names:
        raise QuantCliError(
            f"Application '{app_name}' not found in organization '{context.active_organization}'.",
            hint="Run `quant-cloud app list` to see available applications.",
        )

    store.save_active_platform_config(AuthConfigUpdate(active_application=app_name, active_environment=None))
    console.print(f"[green]✓ Switched to application {escape(app_name)}[/green]")
    _note_overrides(context, "organization")
    return 0


def run_current(*, store: Optional[CredentialStore] = None) -> int:
    context = resolve_effective_context(store=store)
    if not context.active_application:
        console.print("[yellow]No active application set.[/yellow]")
        console.print("[dim]Use `quant-cloud app select` to choose one.[/dim]")
        return 0

    source = context.sources.get("application", SOURCE_STORED)
    console.print(f"[bold]Application:[/bold] [cyan]{escape(context.active_application)}[/cyan] [dim]({source})[/dim]")
    if context.active_organization:
        console.print(f"  [dim]Organization:[/dim] {escape(context.active_organization)}")
    return 0


def _note_overrides(context: EffectiveContext, *fields: str) -> None:
    for name, value, source in overridden_fields(context, *fields):
        console.print(
            f"[yellow]Note: {name} '{escape(value)}' comes from the {source} setting; "
            f"the stored {name} is unchanged.[/yellow]"
        )
