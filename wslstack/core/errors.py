"""
Error taxonomy — every failure the installer knows how to explain.

All fatal errors derive from ``InstallerError`` and carry an optional
``remedy``: the concrete next action for the operator (a command to run,
a log file to inspect).  The CLI prints ``message`` + ``remedy`` and
exits non-zero; the state store is never touched on these paths.

``NonCriticalCommandError`` is the one exception that is expected to be
caught and logged where it occurs (see ``adapters.shell.command.best_effort``).
"""

from __future__ import annotations


class InstallerError(Exception):
    """Base class for all installer failures."""

    kind = "error"

    def __init__(self, message: str, *, remedy: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.remedy = remedy
        self.report = None

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message, "remedy": self.remedy}


class PreconditionError(InstallerError):
    """The environment does not meet a hard requirement."""

    kind = "precondition"


class DownloadError(InstallerError):
    """All mirrors and attempts for one artifact were exhausted."""

    kind = "download"

    def __init__(
        self,
        message: str,
        *,
        artifact: str = "",
        attempts: list[str] | None = None,
        remedy: str = "",
    ) -> None:
        super().__init__(message, remedy=remedy)
        self.artifact = artifact
        self.attempts = attempts or []


class ExtractionError(DownloadError):
    """Archive present but unreadable; it is deleted and must be re-fetched."""

    kind = "extraction"


class ConfigurationError(InstallerError):
    """Rendering or writing a configuration file failed."""

    kind = "configuration"


class ServiceStartError(InstallerError):
    """A daemon could not be launched, or never passed its health check in time."""

    kind = "service"

    def __init__(self, message: str, *, service: str = "", log_file: str = "") -> None:
        remedy = f"Inspect the log: {log_file}" if log_file else ""
        super().__init__(message, remedy=remedy)
        self.service = service
        self.log_file = log_file


class NonCriticalCommandError(InstallerError):
    """A best-effort operation failed; logged as a warning, never propagated."""

    kind = "non_critical"


class StepError(InstallerError):
    """An unclassified failure inside a named installation step."""

    kind = "step"

    def __init__(self, step: str, message: str, *, remedy: str = "") -> None:
        super().__init__(f"Step '{step}' failed: {message}", remedy=remedy)
        self.step = step


class CommandFailed(InstallerError):
    """A required external command exited non-zero (see ``CommandResult.check``)."""

    kind = "command"

    def __init__(self, message: str, *, command: list[str] | None = None, remedy: str = "") -> None:
        super().__init__(message, remedy=remedy)
        self.command = command or []


class Interrupted(InstallerError):
    """The operator interrupted the run (Ctrl-C or a closed prompt)."""

    kind = "interrupted"
