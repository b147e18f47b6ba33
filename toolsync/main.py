"""
toolsync: CLI entrypoint.

Usage:
    toolsync --help
    toolsync install cargo:ripgrep npm:prettier@3.3.3
    toolsync sync packages
    python -m toolsync.main health
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from toolsync import __version__
from toolsync.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="toolsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: $TOOLSYNC_CONFIG or the config dir).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """toolsync: install developer tools from many ecosystems, declaratively."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(debug=debug, verbose=verbose, quiet=quiet)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Show which provider toolchains are usable."""
    from toolsync.core.observability.health import check_system_health
    from toolsync.ui.cli.common import get_app

    app = get_app(ctx)
    system_health = check_system_health(app.backends, bin_dir=app.settings.bin_dir)

    if as_json:
        click.echo(json.dumps(system_health.to_dict(), indent=2))
        return

    status_icons = {
        "healthy": ("💚", "green"),
        "degraded": ("🟡", "yellow"),
        "unhealthy": ("🔴", "red"),
        "unknown": ("❔", "white"),
    }
    icon, color = status_icons.get(system_health.status, ("❔", "white"))

    click.echo()
    click.secho(f"{icon} System Health: {system_health.status.upper()}", fg=color, bold=True)
    click.echo(f"   {system_health.timestamp}")
    click.echo(f"   {len(system_health.available)}/{len(system_health.components)} components usable")
    click.echo()

    for component in system_health.components:
        c_icon, c_color = status_icons.get(component.status, ("❔", "white"))
        click.secho(f"   {c_icon} {component.name}", fg=c_color, bold=True)
        click.echo(f"      {component.message}")

        if ctx.obj.get("verbose") and component.details:
            for key, val in component.details.items():
                click.echo(f"      {key}: {val}")

    click.echo()


@cli.command()
@click.argument("shell", required=False)
@click.pass_context
def env(ctx: click.Context, shell: str | None) -> None:
    """Print a snippet that puts exposed tools on PATH.

    \b
    Example:
        eval "$(toolsync env)"
    """
    from toolsync.core.services.shell_env import detect_shell, path_snippet
    from toolsync.ui.cli.common import get_app

    app = get_app(ctx)
    try:
        click.echo(path_snippet(app.settings.bin_dir, shell or detect_shell()))
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


# ── Register sub-commands from toolsync/ui/cli/ ────────────────

from toolsync.ui.cli.packages import info, install, list_cmd, remove, update  # noqa: E402
from toolsync.ui.cli.sync import sync  # noqa: E402

cli.add_command(install)
cli.add_command(remove)
cli.add_command(update)
cli.add_command(list_cmd)
cli.add_command(info)
cli.add_command(sync)


if __name__ == "__main__":
    cli()
