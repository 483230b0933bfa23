"""
Shared CLI helpers — config loading, progress rendering, fatal errors.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import NoReturn

import click

from wslstack.core.errors import InstallerError, Interrupted
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import StepEvent

logger = logging.getLogger(__name__)

_ICONS = {
    "start": ("▶", "cyan"),
    "done": ("✅", "green"),
    "skip": ("○", "white"),
    "fail": ("❌", "red"),
    "warn": ("⚠️ ", "yellow"),
    "info": ("ℹ️ ", "blue"),
}

_RESUME = "Re-run the installer; completed steps are skipped."

EXIT_INTERRUPTED = 130


def get_config(ctx: click.Context) -> InstallerConfig:
    """The config loaded by the root group."""
    return ctx.obj["config"]


def render_event(event: StepEvent) -> None:
    icon, color = _ICONS.get(event.kind, ("•", "white"))
    text = event.message or event.subject
    if event.kind == "skip":
        text = f"{text} (already done)"
    elif event.kind in ("fail", "warn", "info") and event.subject and event.message:
        text = f"{event.subject}: {event.message}"
    click.secho(f"   {icon} {text}", fg=color)


def fail(ctx: click.Context, err: InstallerError, *, code: int = 1) -> NoReturn:
    """Report a fatal installer error on stderr and exit ``code``."""
    click.secho(f"❌ {err.message}", fg="red", err=True)
    if err.remedy:
        click.echo(f"   → {err.remedy}", err=True)
    log_file: Path | None = ctx.obj.get("log_file") if ctx.obj else None
    if log_file:
        click.echo(f"   Log: {log_file}", err=True)
    sys.exit(code)


@contextmanager
def fatal_errors(ctx: click.Context, *, as_json: bool = False) -> Iterator[None]:
    """Turn every failure inside the block into a reported non-zero exit.

    ``InstallerError`` keeps its message and remedy; an interrupt exits
    130; anything else is logged with its traceback and reported as an
    unexpected error.  With ``as_json`` the error goes to stdout as
    ``{"ok": false, "error": ..., "run": ...}``.
    """
    code = 1
    try:
        yield
        return
    except InstallerError as e:
        err = e
    except click.exceptions.Exit:
        raise
    except (KeyboardInterrupt, click.Abort):
        logger.warning("Interrupted by operator")
        err = Interrupted("Interrupted.", remedy=_RESUME)
        code = EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Unexpected failure")
        err = InstallerError(f"Unexpected error: {e}", remedy=_RESUME)

    if not as_json:
        fail(ctx, err, code=code)
    payload = {"ok": False, "error": err.to_dict()}
    if err.report is not None:
        payload["run"] = err.report.to_dict()
    log_file = ctx.obj.get("log_file") if ctx.obj else None
    if log_file:
        payload["log_file"] = str(log_file)
    click.echo(json.dumps(payload, indent=2))
    sys.exit(code)


def is_interactive() -> bool:
    return sys.stdin.isatty()
