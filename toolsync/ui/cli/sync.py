"""
CLI commands for syncing: installed packages and the registry cache.
"""

from __future__ import annotations

import json
import sys

import click

from toolsync.ui.cli.common import get_app


@click.group()
def sync() -> None:
    """Sync installed packages with the lockfile, or refresh the registry."""


@sync.command()
@click.argument("provider", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def packages(ctx: click.Context, provider: str | None, as_json: bool) -> None:
    """Install whatever the lockfile wants and is missing."""
    from toolsync.core.use_cases.registry import ensure_registry

    app = get_app(ctx)
    ensure_registry(app.settings, app.registry, app.http)
    report = app.dispatcher.sync_report(provider)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        if not report.all_ok:
            sys.exit(1)
        return

    for name, error in report.fatal_errors.items():
        click.secho(f"   🔴 {name}: {error}", fg="red")
    for result in report.results:
        if result.action == "installed":
            click.secho(f"   ✅ {result.source_id} {result.version}", fg="green")
        elif result.action == "skipped":
            if not ctx.obj.get("quiet"):
                click.echo(f"   ✓ {result.source_id} {result.version}")
        else:
            click.secho(f"   ❌ {result.source_id}: {result.message}", fg="red")
        for warning in result.warnings:
            click.secho(f"      ⚠️  {warning}", fg="yellow")

    click.echo()
    color = {"ok": "green", "partial": "yellow", "failed": "red"}[report.status]
    click.secho(
        f"Sync {report.status}: {report.installed} installed, "
        f"{report.skipped} up to date, {report.failed} failed",
        fg=color,
        bold=True,
    )
    if not report.all_ok:
        sys.exit(1)


@sync.command()
@click.option("--force", is_flag=True, help="Download even if the cache is fresh.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def registry(ctx: click.Context, force: bool, as_json: bool) -> None:
    """Refresh the cached package registry."""
    from toolsync.core.use_cases.registry import sync_registry

    app = get_app(ctx)
    result = sync_registry(app.settings, app.registry, app.http, force=force)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        click.secho(f"❌ Registry sync failed: {result.error}", fg="red")
    elif result.skipped:
        click.secho(f"✓ Registry is up to date ({result.entries} packages)", fg="green")
    else:
        click.secho(f"✅ Registry updated ({result.entries} packages)", fg="green", bold=True)

    if not result.ok:
        sys.exit(1)
