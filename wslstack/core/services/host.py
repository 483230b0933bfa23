"""
Host probes — read-only facts about the machine.

RAM from ``/proc/meminfo``, free disk from ``statvfs``, WSL flavour
from ``/proc/version``, and TCP reachability.  No subprocesses.
"""

from __future__ import annotations

import shutil
import socket
from pathlib import Path

PROC_MEMINFO = Path("/proc/meminfo")
PROC_VERSION = Path("/proc/version")
WINDOWS_DRIVE = Path("/mnt/c")


def read_total_ram_mb(meminfo: Path = PROC_MEMINFO) -> int:
    """Read total RAM in MB from /proc/meminfo (0 if unknown)."""
    try:
        with open(meminfo, encoding="utf-8") as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    return int(line.split()[1]) // 1024
    except (OSError, ValueError, IndexError):
        pass
    return 0


def read_disk_free_mb(path: Path | str = "/") -> int:
    """Read free disk space in MB (0 if the path cannot be queried)."""
    try:
        return shutil.disk_usage(path).free // (1024 * 1024)
    except OSError:
        return 0


def read_kernel_version(proc_version: Path = PROC_VERSION) -> str:
    try:
        return proc_version.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


def wsl_flavour(kernel_version: str) -> str:
    """Classify a ``/proc/version`` string as ``wsl2``, ``wsl1`` or ``native``."""
    if "microsoft" not in kernel_version.lower():
        return "native"
    if "WSL2" in kernel_version:
        return "wsl2"
    return "wsl1"


def port_open(port: int, host: str = "localhost", timeout: float = 1.0) -> bool:
    """Whether something accepts TCP connections on ``host:port``."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False
