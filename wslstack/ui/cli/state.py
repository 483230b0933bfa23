"""
CLI commands for the install state file.
"""

from __future__ import annotations

import json
import sys

import click


@click.group()
def state() -> None:
    """Install state — completed steps, reset."""


@state.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, as_json: bool) -> None:
    """List completed and pending steps."""
    from wslstack.core.persistence.state_file import StateStore
    from wslstack.core.services.catalog import STEP_ORDER
    from wslstack.ui.cli.output import get_config

    store = StateStore(get_config(ctx).state_file)
    done = store.completed()

    if as_json:
        click.echo(json.dumps({
            "state_file": str(store.path),
            "completed": done,
            "pending": [name for name in STEP_ORDER if name not in done],
        }, indent=2))
        return

    click.secho(f"\n📋 {store.path}", fg="cyan", bold=True)
    for name in STEP_ORDER:
        if name in done:
            click.secho(f"   ✓ {name}", fg="green")
        else:
            click.echo(f"   ○ {name}")
    extra = [name for name in done if name not in STEP_ORDER]
    for name in extra:
        click.secho(f"   ? {name} (unknown step)", fg="yellow")
    click.echo()


@state.command("reset")
@click.argument("step", required=False)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def reset(ctx: click.Context, step: str | None, yes: bool) -> None:
    """Forget STEP so it runs again (every step when omitted)."""
    from wslstack.core.persistence.state_file import StateStore
    from wslstack.ui.cli.output import get_config

    store = StateStore(get_config(ctx).state_file)
    what = f"step '{step}'" if step else "ALL recorded steps"

    if not yes and not click.confirm(f"Forget {what}?", default=False):
        click.echo("Aborted.")
        sys.exit(1)

    if store.reset(step):
        click.secho(f"✅ Forgot {what}", fg="green")
    else:
        click.secho(f"⚠️  Nothing recorded for {what}", fg="yellow")
