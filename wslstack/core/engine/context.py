"""
StepContext — everything a step body may touch, passed explicitly.

Steps never read globals or environment variables; they get the
immutable config and the three collaborators (command runner,
downloader, service supervisor) from here.  Tests swap any of them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wslstack.core.models.step import StepEvent

if TYPE_CHECKING:
    from wslstack.adapters.shell.command import CommandRunner
    from wslstack.core.models.config import InstallerConfig
    from wslstack.core.services.download import MirroredDownloader
    from wslstack.core.services.supervisor import ServiceSupervisor


EventCallback = Callable[[StepEvent], None]


@dataclass
class StepContext:
    """Collaborators handed to every ``InstallStep.action``."""

    config: InstallerConfig
    runner: CommandRunner
    downloader: MirroredDownloader
    supervisor: ServiceSupervisor
    on_event: EventCallback | None = None

    def emit(self, kind: str, subject: str, message: str = "") -> None:
        if self.on_event is not None:
            self.on_event(StepEvent(kind=kind, subject=subject, message=message))

    def info(self, subject: str, message: str = "") -> None:
        self.emit("info", subject, message)

    def warn(self, subject: str, message: str = "") -> None:
        self.emit("warn", subject, message)
