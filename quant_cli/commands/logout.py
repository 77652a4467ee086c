"""quant-cloud logout — forget the active platform's session, or all of them."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from quant_cli.core.credentials import CredentialStore, get_credential_store

console = Console()


def run(*, all_platforms: bool = False, yes: bool = False, store: Optional[CredentialStore] = None) -> int:
    store = store or get_credential_store()
    config = store.load()

    if not config.platforms:
        console.print("[yellow]Not currently logged in.[/yellow]")
        return 0

    if all_platforms:
        count = len(config.platforms)
        if not yes and not Confirm.ask(f"Log out of all {count} platform(s)?", default=False, console=console):
            console.print("[dim]Logout cancelled.[/dim]")
            return 0
        store.clear()
        console.print(f"[green]✓ Logged out of {count} platform(s).[/green]")
        return 0

    record = config.active_record()
    if record is None:
        console.print("[yellow]No active platform set.[/yellow]")
        console.print("[dim]Use `quant-cloud platform remove` or `quant-cloud logout --all`.[/dim]")
        return 1

    platform_id = config.active_platform
    info = record.platform_info
    who = f" as {record.email}" if record.email else ""
    if not yes and not Confirm.ask(
        f"Log out of {escape(info.name)} ({escape(info.host)}){escape(who)}?", default=True, console=console
    ):
        console.print("[dim]Logout cancelled.[/dim]")
        return 0

    store.remove_platform(platform_id)
    console.print(f"[green]✓ Logged out of {escape(info.name)}.[/green]")

    remaining = store.load()
    if remaining.active_platform:
        next_info = remaining.platforms[remaining.active_platform].platform_info
        console.print(f"[dim]Active platform is now {escape(next_info.name)} ({escape(remaining.active_platform)}).[/dim]")
    return 0
