"""
Step models — the unit of installation work and its outcome.

``InstallStep`` is defined statically by the component modules; the
``StepExecutor`` turns each invocation into a ``StepResult`` and reports
progress through ``StepEvent`` values (the presentation layer subscribes,
the core never prints).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from wslstack.core.engine.context import StepContext


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class InstallStep:
    """A named, idempotent unit of installation work.

    ``action`` raises on failure; returning normally means the step's
    observable effects are in place and the name may be recorded.
    """

    name: str
    action: Callable[[StepContext], Any]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name or "\n" in self.name:
            raise ValueError(f"Invalid step name: {self.name!r}")

    @property
    def label(self) -> str:
        return self.description or self.name


class StepResult(BaseModel):
    """Outcome of one step invocation."""

    step: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class StepEvent(BaseModel):
    """Progress notification emitted by the executor and supervisor."""

    kind: Literal["start", "done", "skip", "fail", "info", "warn"]
    subject: str
    message: str = ""
    timestamp: str = Field(default_factory=_now_iso)
