"""quant-cloud whoami — show the identity and context in effect here."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.markup import escape

from quant_cli.core.context import SOURCE_STORED, resolve_effective_context
from quant_cli.core.credentials import CredentialStore
from quant_cli.core.models import ContextOverrides, parse_timestamp, utcnow

console = Console()


def truncate_token(token: str, keep: int = 8) -> str:
    if len(token) <= keep * 2:
        return "*" * len(token)
    return f"{token[:keep]}...{token[-4:]}"


def describe_remaining(expiry: datetime, now: Optional[datetime] = None) -> str:
    seconds = int((expiry - (now or utcnow())).total_seconds())
    if seconds <= 0:
        return "expired"
    hours, rem = divmod(seconds, 3600)
    if hours >= 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours:
        return f"{hours}h {rem // 60}m"
    return f"{rem // 60}m"


def run(*, platform: Optional[str] = None, store: Optional[CredentialStore] = None) -> int:
    context = resolve_effective_context(ContextOverrides(platform=platform), store=store)

    console.print(f"[bold]{escape(context.email or 'Unknown user')}[/bold]")
    console.print(f"  [dim]Platform:[/dim] {escape(context.platform_id or '-')}")
    console.print(f"  [dim]Host:[/dim] {escape(context.host)}")
    console.print(f"  [dim]Token:[/dim] {escape(truncate_token(context.token))}")

    expired = False
    expiry = parse_timestamp(context.expires_at) if context.expires_at else None
    if expiry is None:
        console.print("  [dim]Expires:[/dim] unknown")
    else:
        remaining = describe_remaining(expiry)
        expired = remaining == "expired"
        style = "red" if expired else "green"
        console.print(f"  [dim]Expires:[/dim] [{style}]{remaining}[/{style}] [dim]({escape(context.expires_at)})[/dim]")

    for label, field, value in (
        ("Organization", "organization", context.active_organization),
        ("Application", "application", context.active_application),
        ("Environment", "environment", context.active_environment),
    ):
        source = context.sources.get(field)
        suffix = f" [dim]({source})[/dim]" if source and source != SOURCE_STORED else ""
        console.print(f"  [dim]{label}:[/dim] {escape(value or '-')}{suffix}")

    if expired:
        console.print("[yellow]⚠ Your session has expired. Run `quant-cloud login --force` to log in again.[/yellow]")
        return 1
    return 0
