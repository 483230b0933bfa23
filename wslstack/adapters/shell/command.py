"""
Shell command adapter — the single place external commands are run.

Every ``apt-get``, ``hdfs``, ``mysql`` and vendor-script invocation goes
through ``CommandRunner.run``.  It never raises for a non-zero exit:
it returns a ``CommandResult`` and the caller decides whether the
failure is fatal (``result.check()``) or best-effort (``best_effort``).

Privilege escalation uses plain ``sudo``: credentials are established
once by the preflight check (``sudo -v``), so steps never prompt.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from wslstack.core.errors import CommandFailed, NonCriticalCommandError

logger = logging.getLogger(__name__)

_TAIL = 2000


@dataclass
class CommandResult:
    """Outcome of one external command."""

    cmd: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.error

    @property
    def command_line(self) -> str:
        return " ".join(self.cmd)

    def describe_failure(self) -> str:
        if self.error:
            return self.error
        detail = self.stderr.strip() or self.stdout.strip()
        base = f"Command failed (exit {self.returncode}): {self.command_line}"
        return f"{base}\n{detail}" if detail else base

    def check(self, remedy: str = "") -> CommandResult:
        """Return self if the command succeeded, else raise ``CommandFailed``."""
        if not self.ok:
            raise CommandFailed(self.describe_failure(), command=self.cmd, remedy=remedy)
        return self

    def to_dict(self) -> dict:
        d: dict = {
            "ok": self.ok,
            "command": self.command_line,
            "returncode": self.returncode,
            "elapsed_ms": self.elapsed_ms,
        }
        if self.stdout:
            d["stdout"] = self.stdout
        if self.stderr:
            d["stderr"] = self.stderr
        if self.error:
            d["error"] = self.error
        return d


class CommandRunner:
    """Run external commands with sudo, env and stdin support."""

    def __init__(self, default_timeout: int = 300) -> None:
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        input: str | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run ``cmd`` to completion and capture its output.

        Args:
            cmd: Argument vector, never a shell string.
            sudo: Prefix with ``sudo`` unless already root.
            input: Text piped to stdin (SQL for ``mysql``).
            env: Extra environment variables layered over the current ones.
            cwd: Working directory.
            timeout: Seconds before the command is killed.
        """
        if sudo and os.geteuid() != 0:
            cmd = ["sudo", *cmd]

        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        timeout = timeout or self.default_timeout
        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)
        start = time.monotonic()
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                input=input,
                env=full_env,
                cwd=cwd,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", timeout, " ".join(cmd))
            return CommandResult(cmd=cmd, returncode=-1, error=f"Command timed out ({timeout}s)")
        except OSError as e:
            logger.warning("Cannot execute %s: %s", cmd[0], e)
            return CommandResult(cmd=cmd, returncode=-1, error=f"Cannot execute {cmd[0]}: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            cmd=cmd,
            returncode=proc.returncode,
            stdout=(proc.stdout or "")[-_TAIL:],
            stderr=(proc.stderr or "")[-_TAIL:],
            elapsed_ms=elapsed_ms,
        )
        if result.ok:
            logger.debug("Command ok in %dms: %s", elapsed_ms, result.command_line)
        else:
            logger.info("Command exited %d: %s", proc.returncode, result.command_line)
        return result


def best_effort(result: CommandResult, what: str) -> bool:
    """Log a failed best-effort command as a warning and carry on.

    Returns:
        Whether the command succeeded.
    """
    if result.ok:
        return True
    err = NonCriticalCommandError(
        f"{what} failed (continuing): {result.describe_failure()}",
        remedy=f"Run manually if needed: {result.command_line}",
    )
    logger.warning("%s — %s", err.message, err.remedy)
    return False
