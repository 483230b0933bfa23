"""
Install use case — the full vertical slice from intent to verified stack.

    preflight → lock → steps (skip done / run / record) → start services → verify

Fatal errors propagate as ``InstallerError``; when the step loop fails
the partial ``RunReport`` is on ``exc.report``.  Nothing here prints:
progress goes to the ``on_event`` callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from wslstack.adapters.shell.command import CommandRunner
from wslstack.core.engine.context import EventCallback, StepContext
from wslstack.core.engine.executor import RunReport, StepExecutor
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import StepEvent
from wslstack.core.observability.health import SystemHealth, verify_installation
from wslstack.core.persistence.lock import InstallLock
from wslstack.core.persistence.state_file import StateStore
from wslstack.core.services.catalog import steps_for
from wslstack.core.services.download import MirroredDownloader
from wslstack.core.services.preflight import Confirm, PreflightReport, PreflightValidator
from wslstack.core.services.stack import StackReport, start_all
from wslstack.core.services.supervisor import ServiceSupervisor

logger = logging.getLogger(__name__)


def build_context(
    config: InstallerConfig,
    on_event: EventCallback | None = None,
    *,
    runner: CommandRunner | None = None,
    downloader: MirroredDownloader | None = None,
    supervisor: ServiceSupervisor | None = None,
) -> StepContext:
    """Wire the default collaborators for ``config``."""
    runner = runner or CommandRunner()
    return StepContext(
        config=config,
        runner=runner,
        downloader=downloader or MirroredDownloader.from_config(config),
        supervisor=supervisor or ServiceSupervisor(runner, on_event=on_event),
        on_event=on_event,
    )


@dataclass
class InstallResult:
    """Result of an install run."""

    components: list[str]
    preflight: PreflightReport | None = None
    run: RunReport | None = None
    services: StackReport | None = None
    health: SystemHealth | None = None

    def to_dict(self) -> dict:
        result: dict = {"components": self.components or ["all"]}
        if self.preflight:
            result["preflight"] = self.preflight.to_dict()
        if self.run:
            result["run"] = self.run.to_dict()
        if self.services:
            result["services"] = self.services.to_dict()
        if self.health:
            result["health"] = self.health.to_dict()
        return result


def run_install(
    config: InstallerConfig,
    components: list[str] | None = None,
    *,
    confirm: Confirm | None = None,
    interactive: bool = True,
    start_services: bool = True,
    skip_preflight: bool = False,
    on_event: EventCallback | None = None,
    ctx: StepContext | None = None,
) -> InstallResult:
    """Install ``components`` (everything when empty), then start and verify.

    Raises:
        KeyError: Unknown component name.
        InstallerError: Preflight, lock, a step, or a service start failed.
    """
    components = list(components or [])
    steps = steps_for(components)
    ctx = ctx or build_context(config, on_event)
    result = InstallResult(components=components)

    def _emit(kind: str, subject: str, message: str = "") -> None:
        if on_event is not None:
            on_event(StepEvent(kind=kind, subject=subject, message=message))

    if not skip_preflight:
        _emit("start", "preflight", "Pre-flight checks")
        result.preflight = PreflightValidator(
            config,
            runner=ctx.runner,
            confirm=confirm,
            interactive=interactive,
        ).validate()
        _emit("done", "preflight", "Pre-flight checks passed")

    store = StateStore(config.state_file)
    logger.info(
        "Install: components=%s steps=%s",
        components or "all",
        [s.name for s in steps],
    )

    with InstallLock(config.lock_file, stale_after=config.lock_stale_seconds):
        result.run = StepExecutor(store, on_event=on_event).run(steps, ctx)

        if start_services:
            if store.contains("hdfs_format"):
                result.services = start_all(ctx, store)
            else:
                _emit("info", "services", "Hadoop not installed, services not started")

    result.health = verify_installation(config, store)
    return result
