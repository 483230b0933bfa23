"""
Preflight validator — the environment gate before any step runs.

Checks run in a fixed order and the first fatal one raises
``PreconditionError`` with a remedy.  Soft problems (not WSL2, low
memory) are warnings that need the operator's confirmation; declining
aborts, and non-interactive runs auto-confirm.

Host facts come from a ``HostProbes`` bundle so every check can be
exercised in tests without touching ``/proc``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from wslstack.adapters.shell.command import CommandRunner
from wslstack.core.errors import PreconditionError
from wslstack.core.models.config import InstallerConfig
from wslstack.core.services import host

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


@dataclass
class HostProbes:
    """Injectable sources of host facts."""

    which: Callable[[str], str | None] = shutil.which
    cwd: Callable[[], Path] = Path.cwd
    kernel_version: Callable[[], str] = host.read_kernel_version
    total_ram_mb: Callable[[], int] = host.read_total_ram_mb
    disk_free_mb: Callable[[Path], int] = host.read_disk_free_mb
    path_exists: Callable[[Path], bool] = Path.exists
    geteuid: Callable[[], int] = os.geteuid


@dataclass
class PreflightReport:
    """Passed checks, accepted warnings and the facts they were based on."""

    passed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    facts: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "passed": self.passed,
            "warnings": self.warnings,
            "facts": self.facts,
        }


class PreflightValidator:
    """Validate the host before installation."""

    def __init__(
        self,
        config: InstallerConfig,
        *,
        runner: CommandRunner | None = None,
        confirm: Confirm | None = None,
        probes: HostProbes | None = None,
        interactive: bool = True,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner()
        self.confirm = confirm
        self.probes = probes or HostProbes()
        self.interactive = interactive

    def validate(self) -> PreflightReport:
        """Run every check in order.

        Raises:
            PreconditionError: A fatal check failed or a warning was declined.
        """
        report = PreflightReport()
        self._check_commands(report)
        self._check_location(report)
        self._check_wsl(report)
        self._check_memory(report)
        self._check_disk(report)
        self._check_sudo(report)
        logger.info("Preflight passed (%d warning(s))", len(report.warnings))
        return report

    # ── Helpers ─────────────────────────────────────────────────

    def _warn(self, report: PreflightReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)
        if self.confirm is None:
            logger.info("Non-interactive run, continuing past warning")
            return
        if not self.confirm(f"{message} Continue anyway?"):
            raise PreconditionError(f"Aborted by user: {message}")

    # ── Checks ──────────────────────────────────────────────────

    def _check_commands(self, report: PreflightReport) -> None:
        required = self.config.preflight.required_commands
        missing = [cmd for cmd in required if self.probes.which(cmd) is None]
        if missing:
            packages = sorted({required[cmd] for cmd in missing})
            raise PreconditionError(
                f"Required command(s) not found: {', '.join(missing)}",
                remedy=f"sudo apt-get install -y {' '.join(packages)}",
            )
        report.passed.append("required commands present")

    def _check_location(self, report: PreflightReport) -> None:
        cwd = os.path.realpath(self.probes.cwd())
        report.facts["cwd"] = cwd
        prefix = self.config.preflight.slow_mount_prefix
        if cwd.startswith(prefix) or cwd.rstrip("/") == prefix.rstrip("/"):
            raise PreconditionError(
                f"Cannot run from the Windows filesystem ({cwd}).",
                remedy="cd ~ and run the installer from your Linux home directory",
            )
        report.passed.append("working directory on Linux filesystem")

    def _check_wsl(self, report: PreflightReport) -> None:
        flavour = host.wsl_flavour(self.probes.kernel_version())
        report.facts["platform"] = flavour
        if flavour == "native":
            self._warn(report, "Not running on WSL. Some features may not work optimally.")
        elif flavour == "wsl1":
            self._warn(report, "WSL1 detected. Performance will be poor.")
        else:
            report.passed.append("running on WSL2")

    def _check_memory(self, report: PreflightReport) -> None:
        total_mb = self.probes.total_ram_mb()
        report.facts["memory_mb"] = total_mb
        minimum_mb = self.config.preflight.min_memory_gb * 1024
        if total_mb < minimum_mb:
            self._warn(
                report,
                f"Low memory detected ({total_mb} MB). "
                f"Minimum {self.config.preflight.min_memory_gb}GB recommended.",
            )
        else:
            report.passed.append(f"memory {total_mb} MB")

    def _check_disk(self, report: PreflightReport) -> None:
        free_mb = self.probes.disk_free_mb(self.config.home)
        if self.probes.path_exists(host.WINDOWS_DRIVE):
            free_mb = min(free_mb, self.probes.disk_free_mb(host.WINDOWS_DRIVE))
        free_gb = free_mb // 1024
        report.facts["disk_free_gb"] = free_gb
        needed = self.config.preflight.min_disk_gb
        if free_gb < needed:
            raise PreconditionError(
                f"Insufficient disk space. Need {needed}GB+, available: {free_gb}GB",
                remedy="sudo apt clean && sudo apt autoremove",
            )
        report.passed.append(f"disk {free_gb} GB free")

    def _check_sudo(self, report: PreflightReport) -> None:
        if self.probes.geteuid() == 0:
            report.passed.append("running as root")
            return
        if self.runner.run(["sudo", "-n", "true"], timeout=15).ok:
            report.passed.append("sudo available")
            return
        if self.interactive and self.runner.run(["sudo", "-v"], timeout=120).ok:
            report.passed.append("sudo authenticated")
            return
        raise PreconditionError(
            "Sudo authentication failed.",
            remedy="Run 'sudo -v' in this terminal, then re-run the installer.",
        )
