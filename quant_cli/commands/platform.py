"""quant-cloud platform — list, switch, inspect and remove stored platforms."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.models import PlatformEntry

console = Console()


def _print_entry(entry: PlatformEntry) -> None:
    marker = "[green]●[/green]" if entry.is_active else "[dim]○[/dim]"
    status = "[green](ACTIVE)[/green]" if entry.is_active else "[dim](inactive)[/dim]"
    console.print(f"{marker} [cyan]{escape(entry.info.name)}[/cyan] {status}")
    console.print(f"   [dim]ID:[/dim] {escape(entry.id)}")
    console.print(f"   [dim]Host:[/dim] {escape(entry.info.host)}")
    if entry.info.description and entry.info.description != entry.info.host:
        console.print(f"   [dim]Description:[/dim] {escape(entry.info.description)}")


def _print_no_platforms() -> None:
    console.print("[yellow]No authenticated platforms found.[/yellow]")
    console.print("[dim]Use `quant-cloud login` to authenticate with a platform.[/dim]")


def _print_not_found(platform_id: str, entries: List[PlatformEntry]) -> None:
    console.print(f"[red]Platform '{escape(platform_id)}' not found.[/red]")
    console.print("Available platforms:")
    for entry in entries:
        console.print(f"  [cyan]{escape(entry.id)}[/cyan] ({escape(entry.info.host)})")


def _choose(entries: List[PlatformEntry], message: str) -> str:
    for entry in entries:
        current = " [green]- current[/green]" if entry.is_active else ""
        console.print(f"  [cyan]{escape(entry.id)}[/cyan] {escape(entry.info.name)} ({escape(entry.info.host)}){current}")
    return Prompt.ask(message, choices=[e.id for e in entries], console=console)


def run_list(store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    entries = store.list_platforms()

    if not entries:
        _print_no_platforms()
        return 0

    console.print("[bold]Authenticated Platforms:[/bold]\n")
    for entry in entries:
        _print_entry(entry)
        console.print()

    if not any(e.is_active for e in entries):
        console.print("[yellow]⚠ No active platform set. Use `quant-cloud platform switch` to activate one.[/yellow]")
    return 0


def run_switch(platform_id: Optional[str] = None, store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    entries = store.list_platforms()

    if not entries:
        _print_no_platforms()
        return 0

    if platform_id is None:
        if len(entries) == 1 and entries[0].is_active:
            only = entries[0]
            console.print(f"[green]Already using {escape(only.info.name)} ({escape(only.info.host)})[/green]")
            return 0
        platform_id = _choose(entries, "Select platform to switch to")

    if not store.switch_platform(platform_id):
        _print_not_found(platform_id, entries)
        return 1

    info = next(e.info for e in entries if e.id == platform_id)
    console.print(f"[green]✓ Switched to {escape(info.name)}[/green]")
    console.print(f"[dim]Now using: {escape(info.host)}[/dim]")
    return 0


def run_current(store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    config = store.load()
    record = config.active_record()

    if record is None:
        console.print("[yellow]No active platform set.[/yellow]")
        console.print("[dim]Use `quant-cloud platform switch` to activate a platform.[/dim]")
        return 0

    info = record.platform_info
    console.print("[bold]Current Active Platform:[/bold]\n")
    console.print(f"[green]●[/green] [cyan]{escape(info.name)}[/cyan]")
    console.print(f"   [dim]ID:[/dim] {escape(config.active_platform)}")
    console.print(f"   [dim]Host:[/dim] {escape(info.host)}")
    if info.description and info.description != info.host:
        console.print(f"   [dim]Description:[/dim] {escape(info.description)}")
    console.print(f"   [dim]User:[/dim] {escape(record.email or 'Unknown')}")
    console.print(f"   [dim]Organizations:[/dim] {len(record.organizations or [])}")
    if record.active_organization:
        console.print(f"   [dim]Active Org:[/dim] {escape(record.active_organization)}")
    return 0


def run_remove(
    platform_id: Optional[str] = None,
    yes: bool = False,
    store: Optional[CredentialStore] = None,
) -> int:
    store = store or get_credential_store()
    entries = store.list_platforms()

    if not entries:
        console.print("[yellow]No authenticated platforms found.[/yellow]")
        return 0

    if platform_id is None:
        platform_id = _choose(entries, "Select platform to remove")

    entry = next((e for e in entries if e.id == platform_id), None)
    if entry is None:
        _print_not_found(platform_id, entries)
        return 1

    label = f"{entry.info.name} ({entry.info.host})" + (" (ACTIVE)" if entry.is_active else "")
    if not yes and not Confirm.ask(f"Remove {escape(label)}?", default=False, console=console):
        console.print("[dim]Removal cancelled.[/dim]")
        return 0

    if not store.remove_platform(platform_id):
        _print_not_found(platform_id, store.list_platforms())
        return 1

    console.print(f"[green]✓ Removed {escape(entry.info.name)}[/green]")
    if entry.is_active:
        config = store.load()
        if config.active_platform:
            new_info = config.platforms[config.active_platform].platform_info
            console.print(f"[yellow]Active platform is now {escape(new_info.name)} ({escape(config.active_platform)}).[/yellow]")
        else:
            console.print("[yellow]⚠ No platforms remain. Use `quant-cloud login` to authenticate.[/yellow]")
    return 0
