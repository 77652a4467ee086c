"""Quant Cloud CLI — Typer app with all subcommands."""

from __future__ import annotations

import traceback
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from quant_cli import __version__
from quant_cli.core.errors import QuantCliError
from quant_sdk.errors import ApiError, AuthError

console = Console(stderr=True)

app = typer.Typer(
    name="quant-cloud",
    help=(
        "Quant Cloud — command line access to the Quant platforms.\n\n"
        "Log in once per platform, then list and select organizations, "
        "applications, environments and projects."
    ),
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog=(
        "Quick start:\n"
        "  quant-cloud login                     Authenticate in the browser\n"
        "  quant-cloud org select                Pick an organization\n"
        "  quant-cloud app list                  Applications in that organization\n\n"
        "Project overrides: put platform/org/app/env in a .quant.yml at the repository root.\n\n"
        f"Quant Cloud CLI v{__version__}"
    ),
)

_state = {"verbose": False}


def _version_callback(value: bool) -> None:
    if value:
        from rich.panel import Panel
        c = Console()
        c.print(Panel(f"[bold]Quant Cloud CLI[/bold] v{__version__}", border_style="blue"))
        raise typer.Exit()


@app.callback()
def _root(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit.",
        callback=_version_callback, is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging and full tracebacks."),
) -> None:
    """Quant Cloud — command line access to the Quant platforms."""
    from quant_cli.core.log import configure_logging

    _state["verbose"] = verbose
    configure_logging(verbose=verbose)


def main() -> None:
    app()


# ── login / logout / whoami ──────────────────────────────────────

@app.command()
def login(
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Local port for the OAuth callback (default 8090, 0 picks a free one)."
    ),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", "-e", help="Custom API endpoint URL."
    ),
    platform: Optional[str] = typer.Option(
        None, "--platform", help="Platform to log into: quantgov or quantcdn."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Log in again even with a valid token."),
) -> None:
    """Authenticate with a Quant platform in the browser.

    Example:
      quant-cloud login
      quant-cloud login --platform quantcdn
      quant-cloud login --endpoint https://api.example.com --port 9000
    """
    _run_safe(lambda: _login_impl(port, endpoint, platform, force))


def _login_impl(port: Optional[int], endpoint: Optional[str], platform: Optional[str], force: bool) -> int:
    from quant_cli.commands.login import run
    return run(port=port, endpoint=endpoint, platform=platform, force=force)


@app.command()
def logout(
    all_platforms: bool = typer.Option(False, "--all", help="Log out of every platform."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Forget the active platform's credentials.

    Example:
      quant-cloud logout
      quant-cloud logout --all --yes
    """
    _run_safe(lambda: _logout_impl(all_platforms, yes))


def _logout_impl(all_platforms: bool, yes: bool) -> int:
    from quant_cli.commands.logout import run
    return run(all_platforms=all_platforms, yes=yes)


@app.command()
def whoami(
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID to inspect."),
) -> None:
    """Show the signed-in user and the context in effect here."""
    _run_safe(lambda: _whoami_impl(platform))


def _whoami_impl(platform: Optional[str]) -> int:
    from quant_cli.commands.whoami import run
    return run(platform=platform)


# ── platform ─────────────────────────────────────────────────────

platform_app = typer.Typer(help="Manage authenticated platforms.", no_args_is_help=True)
app.add_typer(platform_app, name="platform")
app.add_typer(platform_app, name="plat", hidden=True)


@platform_app.command("list")
def platform_list() -> None:
    """List all authenticated platforms."""
    _run_safe(_platform_list_impl)


def _platform_list_impl() -> int:
    from quant_cli.commands.platform import run_list
    return run_list()


@platform_app.command("switch")
def platform_switch(
    platform_id: Optional[str] = typer.Argument(None, help="Platform ID to make active."),
) -> None:
    """Switch the active platform.

    Example:
      quant-cloud platform switch quantcdn
    """
    _run_safe(lambda: _platform_switch_impl(platform_id))


def _platform_switch_impl(platform_id: Optional[str]) -> int:
    from quant_cli.commands.platform import run_switch
    return run_switch(platform_id)


@platform_app.command("current")
def platform_current() -> None:
    """Show the active platform."""
    _run_safe(_platform_current_impl)


def _platform_current_impl() -> int:
    from quant_cli.commands.platform import run_current
    return run_current()


@platform_app.command("remove")
def platform_remove(
    platform_id: Optional[str] = typer.Argument(None, help="Platform ID to remove."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Remove a platform's stored credentials."""
    _run_safe(lambda: _platform_remove_impl(platform_id, yes))


def _platform_remove_impl(platform_id: Optional[str], yes: bool) -> int:
    from quant_cli.commands.platform import run_remove
    return run_remove(platform_id, yes=yes)


# ── org ──────────────────────────────────────────────────────────

org_app = typer.Typer(help="Organizations on the active platform.", no_args_is_help=True)
app.add_typer(org_app, name="org")


@org_app.command("list")
def org_list(
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """List your organizations and refresh the cached list."""
    _run_safe(lambda: _org_list_impl(platform))


def _org_list_impl(platform: Optional[str]) -> int:
    from quant_cli.commands.org import run_list
    return run_list(platform=platform)


@org_app.command("select")
def org_select(
    org: Optional[str] = typer.Argument(None, help="Organization machine name or ID."),
) -> None:
    """Set the active organization (clears application, environment and project)."""
    _run_safe(lambda: _org_select_impl(org))


def _org_select_impl(org: Optional[str]) -> int:
    from quant_cli.commands.org import run_select
    return run_select(org)


@org_app.command("current")
def org_current() -> None:
    """Show the organization in effect here."""
    _run_safe(_org_current_impl)


def _org_current_impl() -> int:
    from quant_cli.commands.org import run_current
    return run_current()


# ── app ──────────────────────────────────────────────────────────

app_app = typer.Typer(help="Applications in an organization.", no_args_is_help=True)
app.add_typer(app_app, name="app")


@app_app.command("list")
def app_list(
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """List applications in the organization."""
    _run_safe(lambda: _app_list_impl(org, platform))


def _app_list_impl(org: Optional[str], platform: Optional[str]) -> int:
    from quant_cli.commands.app import run_list
    return run_list(org=org, platform=platform)


@app_app.command("select")
def app_select(
    name: Optional[str] = typer.Argument(None, help="Application name."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Must be the active platform."),
) -> None:
    """Set the active application (clears environment)."""
    _run_safe(lambda: _app_select_impl(name, org, platform))


def _app_select_impl(name: Optional[str], org: Optional[str], platform: Optional[str]) -> int:
    from quant_cli.commands.app import run_select
    return run_select(name, org=org, platform=platform)


@app_app.command("current")
def app_current() -> None:
    """Show the application in effect here."""
    _run_safe(_app_current_impl)


def _app_current_impl() -> int:
    from quant_cli.commands.app import run_current
    return run_current()


# ── env ──────────────────────────────────────────────────────────

env_app = typer.Typer(help="Environments of an application.", no_args_is_help=True)
app.add_typer(env_app, name="env")


@env_app.command("list")
def env_list(
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """List environments of the application."""
    _run_safe(lambda: _env_list_impl(org, app_name, platform))


def _env_list_impl(org: Optional[str], app_name: Optional[str], platform: Optional[str]) -> int:
    from quant_cli.commands.env import run_list
    return run_list(org=org, app=app_name, platform=platform)


@env_app.command("select")
def env_select(
    name: Optional[str] = typer.Argument(None, help="Environment name."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Must be the active platform."),
) -> None:
    """Set the active environment."""
    _run_safe(lambda: _env_select_impl(name, org, app_name, platform))


def _env_select_impl(
    name: Optional[str], org: Optional[str], app_name: Optional[str], platform: Optional[str]
) -> int:
    from quant_cli.commands.env import run_select
    return run_select(name, org=org, app=app_name, platform=platform)


@env_app.command("current")
def env_current() -> None:
    """Show the environment in effect here."""
    _run_safe(_env_current_impl)


def _env_current_impl() -> int:
    from quant_cli.commands.env import run_current
    return run_current()


@env_app.command("create")
def env_create(
    name: Optional[str] = typer.Argument(None, help="Environment name (letters, numbers, - and _)."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
    clone_from: Optional[str] = typer.Option(None, "--clone-from", help="Environment to copy configuration from."),
    min_capacity: int = typer.Option(1, "--min-capacity", help="Minimum task count."),
    max_capacity: int = typer.Option(10, "--max-capacity", help="Maximum task count."),
    select: Optional[bool] = typer.Option(
        None, "--select/--no-select", help="Make the new environment active (asked when interactive)."
    ),
) -> None:
    """Create an environment in the application.

    Example:
      quant-cloud env create staging --clone-from production
      quant-cloud env create
    """
    _run_safe(lambda: _env_create_impl(name, org, app_name, platform, clone_from, min_capacity, max_capacity, select))


def _env_create_impl(
    name: Optional[str],
    org: Optional[str],
    app_name: Optional[str],
    platform: Optional[str],
    clone_from: Optional[str],
    min_capacity: int,
    max_capacity: int,
    select: Optional[bool],
) -> int:
    from quant_cli.commands.env import run_create
    return run_create(
        name, org=org, app=app_name, platform=platform, clone_from=clone_from,
        min_capacity=min_capacity, max_capacity=max_capacity, select=select,
    )


@env_app.command("logs")
def env_logs(
    env: Optional[str] = typer.Option(None, "--env", help="Environment override."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep polling for new log lines."),
    lines: int = typer.Option(100, "--lines", "-n", help="Number of recent lines to show."),
    interval: float = typer.Option(2.0, "--interval", help="Seconds between polls with --follow."),
) -> None:
    """Show recent environment logs.

    Example:
      quant-cloud env logs -n 50
      quant-cloud env logs --env staging --follow
    """
    _run_safe(lambda: _env_logs_impl(env, org, app_name, platform, follow, lines, interval))


def _env_logs_impl(
    env: Optional[str],
    org: Optional[str],
    app_name: Optional[str],
    platform: Optional[str],
    follow: bool,
    lines: int,
    interval: float,
) -> int:
    from quant_cli.commands.env import run_logs
    return run_logs(
        env=env, org=org, app=app_name, platform=platform, follow=follow, lines=lines, poll_interval=interval
    )


# ── env state ────────────────────────────────────────────────────

state_app = typer.Typer(help="Stop, start or redeploy an environment.", no_args_is_help=True)
env_app.add_typer(state_app, name="state")


@state_app.command("stop")
def env_state_stop(
    env: Optional[str] = typer.Option(None, "--env", help="Environment override."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """Stop the environment's tasks."""
    _run_safe(lambda: _env_state_impl("stop", env, org, app_name, platform))


@state_app.command("start")
def env_state_start(
    env: Optional[str] = typer.Option(None, "--env", help="Environment override."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """Start a stopped environment."""
    _run_safe(lambda: _env_state_impl("start", env, org, app_name, platform))


@state_app.command("redeploy")
def env_state_redeploy(
    env: Optional[str] = typer.Option(None, "--env", help="Environment override."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    app_name: Optional[str] = typer.Option(None, "--app", help="Application override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
    tag: Optional[str] = typer.Option(None, "--tag", help="Image tag to deploy."),
) -> None:
    """Redeploy the environment, optionally with a new image tag.

    Example:
      quant-cloud env state redeploy --env production --tag v1.4.2
    """
    _run_safe(lambda: _env_state_impl("redeploy", env, org, app_name, platform, tag))


def _env_state_impl(
    action: str,
    env: Optional[str],
    org: Optional[str],
    app_name: Optional[str],
    platform: Optional[str],
    tag: Optional[str] = None,
) -> int:
    from quant_cli.commands.env import run_state
    return run_state(action, env=env, org=org, app=app_name, platform=platform, image_tag=tag)


# ── project ──────────────────────────────────────────────────────

project_app = typer.Typer(help="Static-hosting projects in an organization.", no_args_is_help=True)
app.add_typer(project_app, name="project")


@project_app.command("list")
def project_list(
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform ID override."),
) -> None:
    """List projects in the organization."""
    _run_safe(lambda: _project_list_impl(org, platform))


def _project_list_impl(org: Optional[str], platform: Optional[str]) -> int:
    from quant_cli.commands.project import run_list
    return run_list(org=org, platform=platform)


@project_app.command("select")
def project_select(
    name: Optional[str] = typer.Argument(None, help="Project machine name or display name."),
    org: Optional[str] = typer.Option(None, "--org", help="Organization override."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Must be the active platform."),
) -> None:
    """Set the active project."""
    _run_safe(lambda: _project_select_impl(name, org, platform))


def _project_select_impl(name: Optional[str], org: Optional[str], platform: Optional[str]) -> int:
    from quant_cli.commands.project import run_select
    return run_select(name, org=org, platform=platform)


@project_app.command("current")
def project_current() -> None:
    """Show the active project."""
    _run_safe(_project_current_impl)


def _project_current_impl() -> int:
    from quant_cli.commands.project import run_current
    return run_current()


def _run_safe(fn, verbose: Optional[bool] = None) -> None:
    """Run a command body with clean error handling; non-zero return codes exit."""
    verbose = _state["verbose"] if verbose is None else verbose
    try:
        exit_code = fn()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise SystemExit(130)
    except QuantCliError as e:
        console.print(f"[red bold]Error:[/red bold] {escape(e.message)}")
        if e.hint:
            console.print(f"[dim]{escape(e.hint)}[/dim]")
        if verbose:
            console.print(traceback.format_exc(), markup=False)
        raise SystemExit(1)
    except ApiError as e:
        console.print(f"[red bold]API error:[/red bold] {escape(str(e))}")
        if isinstance(e, AuthError):
            console.print("[dim]Your session may have expired. Run `quant-cloud login --force`.[/dim]")
        if verbose:
            console.print(traceback.format_exc(), markup=False)
        raise SystemExit(1)
    except Exception as e:
        console.print(f"\n[red bold]Error:[/red bold] {escape(str(e))}")
        if verbose:
            console.print(traceback.format_exc(), markup=False)
        else:
            console.print("[dim]Run with --verbose for full traceback.[/dim]")
        raise SystemExit(1)
    if exit_code:
        raise SystemExit(exit_code)
