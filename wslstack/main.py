"""
wslstack — CLI entrypoint.

Usage:
    wslstack                     # menu on a terminal, full install otherwise
    wslstack install hadoop spark
    wslstack start | stop | status
    python -m wslstack.main --help
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from wslstack import __version__
from wslstack.core.observability.logging_config import setup_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="wslstack")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to wslstack.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """wslstack — Hadoop, Spark, Kafka, Pig and Hive on WSL2."""
    from wslstack.core.config.loader import ConfigError, load_config

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("WSLSTACK_LOG_LEVEL", "WARNING")

    try:
        config = load_config(ctx.obj["config_path"])
    except ConfigError as e:
        setup_logging(level=level, quiet_third_party=not debug)
        click.secho(f"❌ {e.message}", fg="red", err=True)
        sys.exit(1)

    ctx.obj["config"] = config
    ctx.obj["log_file"] = setup_logging(
        level=level,
        log_file=os.environ.get("WSLSTACK_LOG_FILE") or config.log_file,
        quiet_third_party=not debug,
    )

    if ctx.invoked_subcommand is None:
        from wslstack.ui.cli.output import is_interactive

        if is_interactive():
            from wslstack.ui.cli.menu import menu

            ctx.invoke(menu)
        else:
            ctx.invoke(install, components=(), yes=True, no_start=False, as_json=False)


# ── Install ─────────────────────────────────────────────────────


@cli.command()
@click.argument("components", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Assume yes to every confirmation.")
@click.option("--no-start", is_flag=True, help="Do not start services afterwards.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    components: tuple[str, ...],
    yes: bool,
    no_start: bool,
    as_json: bool,
) -> None:
    """Install COMPONENTS (hadoop, spark, kafka, pig, hive); all when omitted."""
    from wslstack.core.errors import PreconditionError
    from wslstack.core.services.catalog import steps_for
    from wslstack.core.use_cases.install import run_install
    from wslstack.ui.cli.output import fail, fatal_errors, get_config, is_interactive, render_event

    try:
        steps_for(list(components))
    except KeyError as e:
        fail(ctx, PreconditionError(e.args[0], remedy="Components: hadoop, spark, kafka, pig, hive"))

    config = get_config(ctx)
    interactive = is_interactive() and not yes
    confirm = (lambda msg: click.confirm(msg, default=False)) if interactive else None
    on_event = None if (as_json or ctx.obj.get("quiet")) else render_event

    if not as_json:
        label = ", ".join(components) if components else "full stack"
        click.secho(f"\n📦 Installing {label} into {config.install_dir}", fg="cyan", bold=True)

    with fatal_errors(ctx, as_json=as_json):
        result = run_install(
            config,
            list(components),
            confirm=confirm,
            interactive=interactive,
            start_services=not no_start,
            on_event=on_event,
        )

    if as_json:
        click.echo(json.dumps({"ok": True, **result.to_dict()}, indent=2))
        return

    run = result.run
    assert run is not None
    click.echo()
    click.secho(
        f"✅ Done: {run.succeeded} step(s) run, {run.skipped} already done",
        fg="green",
        bold=True,
    )
    if result.services:
        for warning in result.services.warnings:
            click.secho(f"   ⚠️  {warning}", fg="yellow")
    if result.health:
        _print_health(result.health)
    click.echo(f"   Run: source {config.bashrc}")
    click.echo()


# ── Verify / preflight ──────────────────────────────────────────


def _print_health(health) -> None:
    color = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}.get(health.status, "white")
    click.secho(f"\n🩺 Health: {health.status}", fg=color, bold=True)
    for comp in health.components:
        icon = {"healthy": "✅", "degraded": "⚠️ ", "unhealthy": "❌"}.get(comp.status, "•")
        click.echo(f"   {icon} {comp.name}: {comp.message}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, as_json: bool) -> None:
    """Check installed daemons and recorded steps."""
    from wslstack.core.observability.health import verify_installation
    from wslstack.ui.cli.output import get_config

    health = verify_installation(get_config(ctx))

    if as_json:
        click.echo(json.dumps(health.to_dict(), indent=2))
    else:
        _print_health(health)
        click.echo()
    sys.exit(0 if health.status == "healthy" else 1)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Assume yes to every confirmation.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def preflight(ctx: click.Context, yes: bool, as_json: bool) -> None:
    """Run the environment checks without installing anything."""
    from wslstack.core.services.preflight import PreflightValidator
    from wslstack.ui.cli.output import fatal_errors, get_config, is_interactive

    interactive = is_interactive() and not yes
    confirm = (lambda msg: click.confirm(msg, default=False)) if interactive else None

    with fatal_errors(ctx, as_json=as_json):
        report = PreflightValidator(
            get_config(ctx), confirm=confirm, interactive=interactive
        ).validate()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.secho("✅ Pre-flight checks passed", fg="green", bold=True)
    for item in report.passed:
        click.echo(f"   ✓ {item}")
    for warning in report.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    click.echo()


# ── Config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Installer configuration commands."""


@config.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Show the effective configuration (defaults + file + environment)."""
    from wslstack.ui.cli.output import get_config

    cfg = get_config(ctx)
    data = cfg.model_dump(mode="json")
    data["hive_db"]["password"] = "********"

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.secho("\n⚙️  Configuration", fg="cyan", bold=True)
    click.echo(f"   Install dir: {cfg.install_dir}")
    click.echo(f"   State file:  {cfg.state_file}")
    click.echo(f"   Log file:    {ctx.obj.get('log_file') or cfg.log_file}")
    click.echo(f"   Java:        {cfg.java_home} (Kafka: {cfg.java17_home})")
    click.secho("   Versions:", bold=True)
    for name, version in cfg.versions.model_dump().items():
        click.echo(f"     • {name}: {version}")
    click.secho("   Mirrors:", bold=True)
    for mirror in cfg.apache_mirrors:
        click.echo(f"     • {mirror}")
    click.echo()


# ── Sub-groups ──────────────────────────────────────────────────

from wslstack.ui.cli.menu import menu  # noqa: E402
from wslstack.ui.cli.services import start, status, stop  # noqa: E402
from wslstack.ui.cli.state import state  # noqa: E402

cli.add_command(menu)
cli.add_command(start)
cli.add_command(stop)
cli.add_command(status)
cli.add_command(state)


if __name__ == "__main__":
    cli()
