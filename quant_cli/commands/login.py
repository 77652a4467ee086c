"""quant-cloud login — OAuth authorization-code login with PKCE."""

from __future__ import annotations

import webbrowser
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from quant_cli.core import api
from quant_cli.core.credentials import CredentialStore, get_credential_store
from quant_cli.core.errors import QuantCliError
from quant_cli.core.models import PlatformInfo
from quant_cli.core.oauth import LoginFlow, LoginResult
from quant_cli.core.platforms import KNOWN_PLATFORMS, platform_info_for_host
from quant_cli.core.settings import load_settings

console = Console()


def resolve_target(endpoint: Optional[str], platform: Optional[str]) -> PlatformInfo:
    """Platform to log into: ``--endpoint`` wins, then ``--platform``, then a prompt."""
    if endpoint:
        return platform_info_for_host(endpoint.strip().rstrip("/"))

    if platform:
        if platform not in KNOWN_PLATFORMS:
            raise QuantCliError(
                f"Unknown platform '{platform}'.",
                hint=f"Choose one of: {', '.join(KNOWN_PLATFORMS)}, or use --endpoint.",
            )
        return KNOWN_PLATFORMS[platform]

    console.print("[bold]Select a platform:[/bold]")
    for info in KNOWN_PLATFORMS.values():
        console.print(f"  [cyan]{info.id}[/cyan] {escape(info.name)} - {escape(info.description or '')}")
    console.print("[dim]Use --endpoint to log into a custom API endpoint.[/dim]")
    choice = Prompt.ask("Platform", choices=list(KNOWN_PLATFORMS), default="quantgov", console=console)
    return KNOWN_PLATFORMS[choice]


def _show_authorize_url(url: str) -> None:
    console.print("\n[dim]Opening browser for authentication...[/dim]")
    console.print("If the browser does not open, visit:")
    console.print(escape(url), soft_wrap=True)
    console.print("\n[dim]Waiting for authorization...[/dim]")


def _print_result(result: LoginResult) -> None:
    info = result.platform
    auth = result.auth_config

    if result.already_authenticated:
        console.print(f"[green]✓ Already authenticated with {escape(info.name)}[/green]")
        console.print(f"  [dim]User:[/dim] {escape(auth.email or 'Unknown')}")
        console.print("[dim]Use --force to log in again.[/dim]")
        return

    console.print("\n[green bold]✓ Authentication successful![/green bold]")
    console.print(f"  [dim]Platform:[/dim] {escape(info.name)} ({escape(info.id)})")
    console.print(f"  [dim]Host:[/dim] {escape(info.host)}")
    console.print(f"  [dim]User:[/dim] {escape(auth.email or 'Unknown')}")

    orgs = auth.organizations or []
    if orgs:
        console.print(f"  [dim]Organizations:[/dim] {len(orgs)}")
        for org in orgs:
            roles = org.role_names or "member"
            console.print(f"    - {escape(org.name)} ({escape(org.machine_name)}) [dim]{escape(roles)}[/dim]")
    if auth.active_organization:
        console.print(f"  [dim]Active organization:[/dim] {escape(auth.active_organization)}")
    if result.expires_in:
        console.print(f"  [dim]Token expires in:[/dim] {result.expires_in // 3600}h")

    if result.api_check_passed is False:
        console.print("[yellow]⚠ API test failed, but authentication was successful.[/yellow]")


def run(
    *,
    port: Optional[int] = None,
    endpoint: Optional[str] = None,
    platform: Optional[str] = None,
    force: bool = False,
    store: Optional[CredentialStore] = None,
) -> int:
    settings = load_settings()
    target = resolve_target(endpoint, platform)
    console.print(f"[bold]Logging into {escape(target.name)}[/bold] [dim]({escape(target.host)})[/dim]")

    flow = LoginFlow(
        store or get_credential_store(),
        port=settings.callback_port if port is None else port,
        timeout=settings.login_timeout,
        client_id=settings.client_id,
        open_browser=webbrowser.open,
        client_factory=api.make_client,
        on_authorize_url=_show_authorize_url,
    )
    result = flow.run(target, force=force)
    _print_result(result)
    return 0
