"""
CLI commands for the running stack.

Thin wrappers over ``wslstack.core.use_cases.services``.
"""

from __future__ import annotations

import json

import click


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def start(ctx: click.Context, as_json: bool) -> None:
    """Start every installed daemon in dependency order."""
    from wslstack.core.use_cases.services import start_stack
    from wslstack.ui.cli.output import fatal_errors, get_config, render_event

    if not as_json:
        click.secho("\n🚀 Starting services...", fg="cyan", bold=True)

    with fatal_errors(ctx, as_json=as_json):
        report = start_stack(get_config(ctx), on_event=None if as_json else render_event)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    for name, outcome in report.outcomes.items():
        click.echo(f"   ✓ {name}: {outcome.replace('_', ' ')}")
    for warning in report.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    click.secho("✅ Services started", fg="green", bold=True)
    click.echo()


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stop(ctx: click.Context, as_json: bool) -> None:
    """Stop every daemon in reverse order."""
    from wslstack.core.use_cases.services import stop_stack
    from wslstack.ui.cli.output import get_config

    report = stop_stack(get_config(ctx))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.secho("\n🛑 Stopping services", fg="cyan", bold=True)
    for name, outcome in report.outcomes.items():
        click.echo(f"   • {name}: {outcome.replace('_', ' ')}")
    for warning in report.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    click.echo()


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def status(as_json: bool) -> None:
    """Show which daemons answer on their ports."""
    from wslstack.core.use_cases.services import stack_status

    rows = stack_status()

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.secho("\n📡 Service status", fg="cyan", bold=True)
    for row in rows:
        if row["up"]:
            click.secho(f"   ✓ {row['name']} ({row['port']}): running", fg="green")
        else:
            click.secho(f"   ✗ {row['name']} ({row['port']}): stopped", fg="red")
    click.echo()
