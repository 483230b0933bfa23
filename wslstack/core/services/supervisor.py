"""
Service supervisor — start, wait for, stop and probe background daemons.

Startup protocol for a ``ServiceHandle``:

    1. health check already passes      → ALREADY_RUNNING
    2. launch (detached + pid file, or run a self-daemonizing script)
    3. poll the health check via ``wait_until``
    4. timeout: FATAL → ServiceStartError naming the log file
                WARN_AND_FORCE → run the force command once → FORCED

Stop protocol: optional stop command, then SIGTERM to the pid from the
pid file or to every ``pgrep -f`` match; a process that is already gone
counts as stopped.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from wslstack.adapters.shell.command import CommandRunner, best_effort
from wslstack.core.engine.context import EventCallback
from wslstack.core.errors import ServiceStartError
from wslstack.core.models.service import OnTimeout, ServiceHandle, StartOutcome
from wslstack.core.models.step import StepEvent
from wslstack.core.reliability.polling import wait_until
from wslstack.core.services.host import port_open

logger = logging.getLogger(__name__)

Spawner = Callable[..., Any]


class ServiceSupervisor:
    """Drive ``ServiceHandle`` values through start/stop/status."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        sleep: Callable[[float], None] = time.sleep,
        probe_port: Callable[[int, str], bool] | None = None,
        spawn: Spawner = subprocess.Popen,
        on_event: EventCallback | None = None,
    ) -> None:
        self.runner = runner
        self.sleep = sleep
        self.probe_port = probe_port or (lambda port, host: port_open(port, host))
        self.spawn = spawn
        self.on_event = on_event

    def _emit(self, kind: str, subject: str, message: str = "") -> None:
        if self.on_event is not None:
            self.on_event(StepEvent(kind=kind, subject=subject, message=message))

    # ── Probing ─────────────────────────────────────────────────

    def is_healthy(self, handle: ServiceHandle) -> bool:
        check = handle.health_check
        if check.port is not None:
            return self.probe_port(check.port, check.host)
        result = self.runner.run(list(check.command or []), env=handle.env or None, timeout=30)
        if not result.ok:
            return False
        return check.expect is None or check.expect in result.stdout

    def wait_ready(self, handle: ServiceHandle) -> bool:
        return wait_until(
            lambda: self.is_healthy(handle),
            interval=handle.interval,
            max_attempts=handle.max_attempts,
            sleep=self.sleep,
            label=handle.name,
        )

    def status(self, handles: list[ServiceHandle]) -> dict[str, bool]:
        """Single-shot health of each handle, keyed by name."""
        return {h.name: self.is_healthy(h) for h in handles}

    # ── Start ───────────────────────────────────────────────────

    def start(self, handle: ServiceHandle) -> StartOutcome:
        """Bring ``handle`` to healthy, applying its timeout policy.

        Raises:
            ServiceStartError: The launch failed, or the health check never
                passed and policy is FATAL.
        """
        if self.is_healthy(handle):
            logger.info("%s already running (%s)", handle.name, handle.health_check.describe())
            self._emit("skip", handle.name, "already running")
            return StartOutcome.ALREADY_RUNNING

        if handle.start_command:
            self._emit("start", handle.name, f"starting {handle.name}")
            self._launch(handle)
        else:
            self._emit("info", handle.name, f"waiting for {handle.name}")

        if self.wait_ready(handle):
            logger.info("%s is ready", handle.name)
            self._emit("done", handle.name, "ready")
            return StartOutcome.STARTED

        return self._on_timeout(handle)

    def _launch(self, handle: ServiceHandle) -> None:
        cmd = list(handle.start_command)
        if handle.sudo and os.geteuid() != 0:
            cmd = ["sudo", *cmd]

        if not handle.detached:
            result = self.runner.run(cmd, env=handle.env or None, timeout=600)
            best_effort(result, f"Start script for {handle.name}")
            return

        env = None
        if handle.env:
            env = os.environ.copy()
            env.update(handle.env)

        log_target = handle.log_file or Path(os.devnull)
        logger.info("Launching %s: %s (log: %s)", handle.name, " ".join(cmd), log_target)
        try:
            if handle.log_file is not None:
                handle.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(log_target, "ab") as log:
                proc = self.spawn(
                    cmd,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    env=env,
                    start_new_session=True,
                )
            if handle.pid_file is not None:
                handle.pid_file.parent.mkdir(parents=True, exist_ok=True)
                handle.pid_file.write_text(f"{proc.pid}\n", encoding="utf-8")
        except OSError as e:
            self._emit("fail", handle.name, f"could not launch: {e}")
            raise ServiceStartError(
                f"Could not launch {handle.name}: {e}",
                service=handle.name,
                log_file=str(handle.log_file) if handle.log_file else "",
            ) from e

    def _on_timeout(self, handle: ServiceHandle) -> StartOutcome:
        waited = handle.max_attempts * handle.interval
        if handle.on_timeout == OnTimeout.WARN_AND_FORCE:
            logger.warning("%s not ready after %.0fs, forcing", handle.name, waited)
            self._emit("warn", handle.name, f"not ready after {waited:.0f}s, forcing")
            result = self.runner.run(
                list(handle.force_ready_command or []), env=handle.env or None, timeout=60
            )
            best_effort(result, f"Force-ready for {handle.name}")
            return StartOutcome.FORCED

        log_hint = str(handle.log_file) if handle.log_file else ""
        self._emit("fail", handle.name, f"not ready after {waited:.0f}s")
        raise ServiceStartError(
            f"{handle.name} did not become ready within {waited:.0f}s "
            f"({handle.health_check.describe()})",
            service=handle.name,
            log_file=log_hint,
        )

    # ── Stop ────────────────────────────────────────────────────

    def stop(self, handle: ServiceHandle) -> bool:
        """Stop ``handle``. Returns True if any stop action was taken."""
        acted = False

        if handle.stop_command:
            result = self.runner.run(list(handle.stop_command), env=handle.env or None, timeout=300)
            best_effort(result, f"Stop script for {handle.name}")
            acted = True

        pids = self._read_pid(handle.pid_file)
        if not pids and handle.process_pattern:
            pids = self._pgrep(handle.process_pattern)

        for pid in pids:
            acted = self._terminate(handle.name, pid) or acted

        if handle.pid_file is not None:
            handle.pid_file.unlink(missing_ok=True)

        if acted:
            self._emit("done", handle.name, "stopped")
        return acted

    @staticmethod
    def _read_pid(pid_file: Path | None) -> list[int]:
        if pid_file is None or not pid_file.is_file():
            return []
        try:
            return [int(pid_file.read_text(encoding="utf-8").strip())]
        except ValueError:
            logger.warning("Ignoring malformed pid file: %s", pid_file)
            return []

    def _pgrep(self, pattern: str) -> list[int]:
        result = self.runner.run(["pgrep", "-f", pattern], timeout=15)
        if not result.ok:
            return []
        own = os.getpid()
        return [int(p) for p in result.stdout.split() if p.isdigit() and int(p) != own]

    @staticmethod
    def _terminate(name: str, pid: int) -> bool:
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.info("%s (pid %d) already gone", name, pid)
            return False
        except PermissionError:
            logger.warning("No permission to stop %s (pid %d)", name, pid)
            return False
        logger.info("Sent SIGTERM to %s (pid %d)", name, pid)
        return True
