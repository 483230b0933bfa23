"""
Service models — how a supervised daemon is started, probed and stopped.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OnTimeout(StrEnum):
    """What the supervisor does when a health check never passes."""

    FATAL = "fatal"
    WARN_AND_FORCE = "warn_and_force"


class StartOutcome(StrEnum):
    """How ``ServiceSupervisor.start`` concluded (failures raise instead)."""

    ALREADY_RUNNING = "already_running"
    STARTED = "started"
    FORCED = "forced"


class HealthCheck(BaseModel):
    """Cheap, side-effect-free readiness probe.

    Exactly one of ``port`` or ``command`` is set.  A command probe passes
    when it exits 0 and, if ``expect`` is given, its stdout contains it.
    """

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int | None = None
    command: list[str] | None = None
    expect: str | None = None

    @model_validator(mode="after")
    def _one_probe(self) -> HealthCheck:
        if (self.port is None) == (self.command is None):
            raise ValueError("HealthCheck needs exactly one of 'port' or 'command'")
        return self

    @classmethod
    def tcp(cls, port: int, host: str = "localhost") -> HealthCheck:
        return cls(host=host, port=port)

    @classmethod
    def status(cls, command: list[str], expect: str | None = None) -> HealthCheck:
        return cls(command=command, expect=expect)

    def describe(self) -> str:
        if self.port is not None:
            return f"{self.host}:{self.port}"
        return " ".join(self.command or [])


class ServiceHandle(BaseModel):
    """A supervised background daemon.

    ``detached=False`` means ``start_command`` is a vendor script that
    daemonizes on its own (``start-dfs.sh``); the supervisor runs it to
    completion instead of capturing a pid.  An empty ``start_command``
    means there is nothing to launch, only a condition to wait for
    (HDFS leaving safe mode).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    start_command: list[str] = Field(default_factory=list)
    health_check: HealthCheck
    pid_file: Path | None = None
    log_file: Path | None = None
    stop_command: list[str] | None = None
    process_pattern: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    detached: bool = True
    sudo: bool = False

    max_attempts: int = Field(default=60, ge=1)
    interval: float = Field(default=1.0, ge=0)
    on_timeout: OnTimeout = OnTimeout.FATAL
    force_ready_command: list[str] | None = None

    @model_validator(mode="after")
    def _force_needs_command(self) -> ServiceHandle:
        if self.on_timeout == OnTimeout.WARN_AND_FORCE and not self.force_ready_command:
            raise ValueError(f"{self.name}: warn_and_force requires force_ready_command")
        return self
