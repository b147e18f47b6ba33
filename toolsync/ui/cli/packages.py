"""
CLI commands for package management: install, remove, update, list, info.

Thin wrappers over ``toolsync.core.use_cases.packages``.
"""

from __future__ import annotations

import json
import sys

import click

from toolsync.ui.cli.common import get_app, print_batch


@click.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, packages: tuple[str, ...], as_json: bool) -> None:
    """Install packages, e.g. cargo:ripgrep or npm:prettier@3.3.3."""
    from toolsync.core.use_cases.packages import install_packages

    result = install_packages(get_app(ctx), list(packages))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.secho(f"📦 Installing {len(packages)} package(s)...", fg="cyan")
        print_batch(result, "Installed")

    if not result.all_ok:
        sys.exit(1)


@click.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove(ctx: click.Context, packages: tuple[str, ...], as_json: bool) -> None:
    """Uninstall packages and drop them from the lockfile."""
    from toolsync.core.use_cases.packages import remove_packages

    result = remove_packages(get_app(ctx), list(packages))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_batch(result, "Removed")

    if not result.all_ok:
        sys.exit(1)


@click.command()
@click.argument("packages", nargs=-1)
@click.option("--all", "update_all", is_flag=True, help="Update every installed package.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(ctx: click.Context, packages: tuple[str, ...], update_all: bool, as_json: bool) -> None:
    """Update packages to their latest version."""
    from toolsync.core.use_cases.packages import update_packages

    if not packages and not update_all:
        click.secho("❌ Name at least one package, or pass --all", fg="red", err=True)
        sys.exit(1)

    result = update_packages(get_app(ctx), list(packages), update_all=update_all)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        if not result.items:
            click.secho("Nothing to update", fg="yellow")
            return
        print_batch(result, "Updated")

    if not result.all_ok:
        sys.exit(1)


@click.command(name="list")
@click.argument("filters", nargs=-1)
@click.option("--all", "show_all", is_flag=True, help="Include every registry package.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, filters: tuple[str, ...], show_all: bool, as_json: bool) -> None:
    """List installed packages, optionally only those starting with FILTERS."""
    from toolsync.core.use_cases.packages import list_packages

    result = list_packages(get_app(ctx), include_available=show_all, filters=list(filters))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.packages:
        click.secho("No matching packages" if filters else "No packages installed", fg="yellow")
        return

    for pkg in result.packages:
        if pkg.installed:
            marker, color = "●", "green"
        elif pkg.requested:
            marker, color = "○", "yellow"
        else:
            marker, color = " ", None
        click.secho(f" {marker} {pkg.source_id}", fg=color, nl=False)
        if pkg.installed:
            click.echo(f"  {pkg.installed}", nl=False)
        elif pkg.requested:
            click.echo(f"  (wants {pkg.requested}, not installed)", nl=False)
        if pkg.update_available:
            click.secho(f"  🔄 update available: {pkg.latest}", fg="cyan", nl=False)
        click.echo()
        if show_all and pkg.description and ctx.obj.get("verbose"):
            click.echo(f"      {pkg.description}")

    if result.updates:
        click.echo()
        click.secho(f"💡 {result.updates} update(s) available, run 'toolsync update --all'", fg="cyan")


@click.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, packages: tuple[str, ...], as_json: bool) -> None:
    """Show registry details for packages."""
    from toolsync.core.use_cases.packages import package_info

    result = package_info(get_app(ctx), list(packages))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for i, pkg in enumerate(result.packages):
            if i:
                click.echo()
            data = pkg.to_dict()
            click.secho(f"📦 {data['name']}", bold=True)
            click.echo(f"   Package ID:  {data['source_id']}")
            click.echo(f"   Provider:    {data['provider']}")
            for label, key in (("Version", "version"), ("Homepage", "homepage"), ("Description", "description")):
                if data[key]:
                    click.echo(f"   {label + ':':<12} {data[key]}")
            for label, key in (("Licenses", "licenses"), ("Languages", "languages"), ("Categories", "categories")):
                if data[key]:
                    click.echo(f"   {label + ':':<12} {', '.join(data[key])}")
            if pkg.installed:
                click.secho(f"   Status:      installed ({pkg.installed})", fg="green")
            elif pkg.requested:
                click.secho(f"   Status:      in lockfile ({pkg.requested}), not installed", fg="yellow")
            else:
                click.echo("   Status:      not installed")
            if data["binaries"]:
                click.echo("   Binaries:")
                for name, path in data["binaries"].items():
                    click.echo(f"     {name}: {path}")
        for raw, reason in result.missing.items():
            click.secho(f"❌ {raw}: {reason}", fg="red", err=True)

    if not result.all_found:
        sys.exit(1)
