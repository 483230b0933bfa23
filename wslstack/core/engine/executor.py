"""
Step executor — the resumable installation loop.

Runs named steps in order.  A step whose name is already in the state
store is skipped; a step that returns normally is recorded *before*
``run_step`` returns; a step that raises is never recorded and aborts
the run.  Re-running after a failure therefore resumes at the first
step that did not complete.

Flow:
    steps → (skip | run → mark_done) → RunReport
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from wslstack.core.engine.context import EventCallback, StepContext
from wslstack.core.errors import InstallerError, StepError
from wslstack.core.models.step import InstallStep, StepEvent, StepResult
from wslstack.core.persistence.state_file import StateStore

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Result of executing a step sequence."""

    results: list[StepResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "steps": [r.model_dump(mode="json") for r in self.results],
        }


class StepExecutor:
    """Skip-or-run-then-mark loop over ``InstallStep`` values."""

    def __init__(self, store: StateStore, on_event: EventCallback | None = None) -> None:
        self.store = store
        self.on_event = on_event

    def _emit(self, kind: str, subject: str, message: str = "") -> None:
        if self.on_event is not None:
            self.on_event(StepEvent(kind=kind, subject=subject, message=message))

    def run_step(self, step: InstallStep, ctx: StepContext) -> StepResult:
        """Run one step unless it is already recorded as done.

        Raises:
            InstallerError: The step failed; nothing was recorded.
        """
        if self.store.contains(step.name):
            logger.info("Step already completed, skipping: %s", step.name)
            self._emit("skip", step.name, step.label)
            return StepResult(step=step.name, status="skipped")

        started = datetime.now(UTC).isoformat()
        t0 = time.monotonic()
        logger.info("Step starting: %s", step.name)
        self._emit("start", step.name, step.label)

        try:
            step.action(ctx)
        except InstallerError as e:
            self._fail(step, e.message, t0)
            raise
        except Exception as e:
            self._fail(step, str(e), t0)
            raise StepError(step.name, str(e)) from e

        self.store.mark_done(step.name)
        duration_ms = int((time.monotonic() - t0) * 1000)
        logger.info("Step completed: %s (%dms)", step.name, duration_ms)
        self._emit("done", step.name, step.label)
        return StepResult(
            step=step.name,
            status="ok",
            started_at=started,
            duration_ms=duration_ms,
        )

    def _fail(self, step: InstallStep, message: str, t0: float) -> None:
        duration_ms = int((time.monotonic() - t0) * 1000)
        logger.error("Step failed: %s after %dms: %s", step.name, duration_ms, message)
        self._emit("fail", step.name, message)

    def run(self, steps: list[InstallStep], ctx: StepContext) -> RunReport:
        """Run steps sequentially, stopping at the first failure.

        The exception propagates with the partial report attached as
        ``exc.report`` (completed and skipped steps plus the failed one).
        """
        report = RunReport()
        for step in steps:
            try:
                report.results.append(self.run_step(step, ctx))
            except InstallerError as e:
                report.results.append(
                    StepResult(step=step.name, status="failed", error=e.message)
                )
                e.report = report
                raise
        return report
