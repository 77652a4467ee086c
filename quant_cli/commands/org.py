"""quant-cloud org — list, select and show organizations."""

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
)
from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.errors import QuantCliError
from quant_cli.core.models import AuthConfigUpdate, ContextOverrides, EffectiveContext
from quant_sdk.models import Organization

console = Console()


def find_organization(organizations: List[Organization], key: str) -> Optional[Organization]:
    for org in organizations:
        if org.machine_name == key or str(org.id) == key:
            return org
    return None


def _fetch_organizations(context: EffectiveContext) -> List[Organization]:
    with api.client_for_context(context) as client:
        return client.get_user_info().organizations


def _refresh_cache(store: CredentialStore, platform_id: str, organizations: List[Organization]) -> None:
    """Store the fetched list on ``platform_id``; default the active org to the first one."""
    auth = store.get_platform_config(platform_id)
    info = store.get_platform_info(platform_id)
    if auth is None or info is None:
        return
    updates = {"organizations": organizations}
    if not auth.active_organization and organizations:
        updates["active_organization"] = organizations[0].machine_name
    store.save_platform_config(platform_id, auth.model_copy(update=updates), info)


def run_list(*, platform: Optional[str] = None, store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    context = resolve_effective_context(ContextOverrides(platform=platform), store=store)
    organizations = _fetch_organizations(context)
    _refresh_cache(store, context.platform_id, organizations)

    if not organizations:
        console.print("[yellow]No organizations found for this account.[/yellow]")
        return 0

    active = context.active_organization or organizations[0].machine_name
    table = Table(title="Organizations", show_lines=False)
    table.add_column("", width=1)
    table.add_column("Machine name", style="cyan")
    table.add_column("Name")
    table.add_column("ID", justify="right")
    table.add_column("Roles", style="dim")
    for org in organizations:
        marker = "[green]●[/green]" if org.machine_name == active else ""
        table.add_row(marker, escape(org.machine_name), escape(org.name), str(org.id), escape(org.role_names))
    console.print(table)
    return 0


def run_select(org_key: Optional[str] = None, *, store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    context = resolve_selection_context(store=store)

    organizations = context.organizations or []
    fetched = False
    if not organizations:
        organizations = _fetch_organizations(context)
        fetched = True
    if not organizations:
        raise QuantCliError("No organizations found for this account.")

    if org_key is None:
        for org in organizations:
            current = " [green]- current[/green]" if org.machine_name == context.active_organization else ""
            console.print(f"  [cyan]{escape(org.machine_name)}[/cyan] {escape(org.name)}{current}")
        org_key = Prompt.ask(
            "Select organization", choices=[o.machine_name for o in organizations], console=console
        )

    org = find_organization(organizations, org_key)
    if org is None:
        raise QuantCliError(
            f"Organization '{org_key}' not found.",
            hint="Run `quant-cloud org list` to see available organizations.",
        )

    changes = {
        "active_organization": org.machine_name,
        "active_application": None,
        "active_environment": None,
        "active_project": None,
    }
    if fetched:
        changes["organizations"] = organizations
    store.save_active_platform_config(AuthConfigUpdate(**changes))

    console.print(f"[green]✓ Switched to organization {escape(org.name)} ({escape(org.machine_name)})[/green]")
    for name, value, source in overridden_fields(context, "organization"):
        console.print(
            f"[yellow]Note: the {source} setting still selects {name} '{escape(value)}' here.[/yellow]"
        )
    return 0


def run_current(*, store: Optional[CredentialStore] = None) -> int:
    context = resolve_effective_context(store=store)
    if not context.active_organization:
        console.print("[yellow]No active organization set.[/yellow]")
        console.print("[dim]Use `quant-cloud org select` to choose one.[/dim]")
        return 0

    org = find_organization(context.organizations or [], context.active_organization)
    label = f"{org.name} ({org.machine_name})" if org else context.active_organization
    source = context.sources.get("organization", SOURCE_STORED)
    console.print(f"[bold]Organization:[/bold] [cyan]{escape(label)}[/cyan] [dim]({source})[/dim]")
    return 0
