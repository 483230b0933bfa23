"""
Interactive menu — the default when ``wslstack`` runs on a terminal.

Options 1-5 install one component each (✓ marks installed ones),
6-8 manage the daemons, 0 exits.  Failures are reported and the menu
comes back; nothing here exits the process except option 0.
"""

from __future__ import annotations

import logging

import click

logger = logging.getLogger(__name__)

_ACTIONS = {
    "6": "start",
    "7": "stop",
    "8": "status",
}


def _draw(config) -> None:
    from wslstack.core.persistence.state_file import StateStore
    from wslstack.core.services.catalog import COMPONENT_LABELS, COMPONENT_MARKERS

    store = StateStore(config.state_file)
    click.clear()
    click.secho("╔══════════════════════════════════════╗", fg="cyan")
    click.secho("║   Big Data Stack Installer for WSL2  ║", fg="cyan")
    click.secho("╚══════════════════════════════════════╝", fg="cyan")
    click.echo()
    for index, (component, label) in enumerate(COMPONENT_LABELS.items(), start=1):
        if store.contains(COMPONENT_MARKERS[component]):
            click.secho(f"  {index}) ✓ {label}", fg="green")
        else:
            click.echo(f"  {index}) ○ {label}")
    click.echo()
    click.echo("  6) Start all services")
    click.echo("  7) Stop all services")
    click.echo("  8) Service status")
    click.echo("  0) Exit")
    click.echo()


@click.command()
@click.pass_context
def menu(ctx: click.Context) -> None:
    """Interactive installer menu."""
    from wslstack.core.errors import InstallerError
    from wslstack.core.services.catalog import COMPONENT_LABELS
    from wslstack.ui.cli import services
    from wslstack.ui.cli.output import get_config, render_event

    config = get_config(ctx)
    components = list(COMPONENT_LABELS)

    while True:
        _draw(config)
        choice = click.prompt("Choice", default="0", show_default=False).strip()

        if choice == "0":
            click.echo("Bye.")
            return

        try:
            if choice.isdigit() and 1 <= int(choice) <= len(components):
                from wslstack.core.use_cases.install import run_install

                component = components[int(choice) - 1]
                click.secho(f"\n📦 Installing {COMPONENT_LABELS[component]}", fg="cyan", bold=True)
                run_install(
                    config,
                    [component],
                    confirm=lambda msg: click.confirm(msg, default=False),
                    on_event=render_event,
                )
                click.secho(f"✅ {COMPONENT_LABELS[component]} installed", fg="green", bold=True)
            elif choice in _ACTIONS:
                ctx.invoke(getattr(services, _ACTIONS[choice]), as_json=False)
            else:
                click.secho(f"⚠️  Invalid choice: {choice}", fg="yellow")
        except InstallerError as e:
            logger.error("Menu action %s failed: %s", choice, e.message)
            click.secho(f"❌ {e.message}", fg="red", err=True)
            if e.remedy:
                click.echo(f"   → {e.remedy}", err=True)
        except SystemExit:
            # a sub-command reported its own failure
            pass

        click.pause()
