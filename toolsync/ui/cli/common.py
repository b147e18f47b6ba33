"""
Shared CLI plumbing: context construction and batch-result printing.
"""

from __future__ import annotations

import sys

import click

from toolsync.core.context import AppContext


def get_app(ctx: click.Context) -> AppContext:
    """Build the application context once per invocation.

    Tests inject a ready-made context as ``obj={"app": ...}``.
    """
    app = ctx.obj.get("app")
    if app is not None:
        return app

    from toolsync.core.config.loader import ConfigError, load_settings
    from toolsync.core.context import build_context

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    app = build_context(settings)
    ctx.obj["app"] = app
    return app


def print_batch(result, verb: str) -> None:
    """Pretty-print a ``BatchResult``."""
    for item in result.items:
        if item.ok:
            suffix = f" {item.version}" if item.version else ""
            click.secho(f"   ✅ {item.source_id}{suffix}", fg="green")
            if item.message and not item.message.startswith("installed"):
                click.echo(f"      {item.message}")
        else:
            click.secho(f"   ❌ {item.source_id}", fg="red")
            click.echo(f"      {item.message}")
        for warning in item.warnings:
            click.secho(f"      ⚠️  {warning}", fg="yellow")

    click.echo()
    if result.all_ok:
        click.secho(f"✅ {verb} {result.succeeded} package(s)", fg="green", bold=True)
    else:
        click.secho(
            f"❌ {result.failed} of {len(result.items)} package(s) failed",
            fg="red",
            bold=True,
        )
