"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  WSLSTACK_LOG_LEVEL env var  >  WARNING (default)

The install log is always written: an append-only, timestamped text
file (``~/hadoop_install.log`` by default, ``WSLSTACK_LOG_FILE`` to
override).  It records everything at INFO or above regardless of the
console level, so a failed run can be diagnosed after the fact.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

# WARNING level: minimal, no noise
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

FALLBACK_LOG_FILE = Path("/tmp/hadoop_install.log")

_NOISY_LOGGERS = ("urllib3",)


def setup_logging(
    level: str = "WARNING",
    log_file: str | Path | None = None,
    log_file_level: str | None = "INFO",
    quiet_third_party: bool = True,
) -> Path | None:
    """Configure Python logging for the entire process.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path of the append-only install log.
        log_file_level: Level for the log file. Defaults to INFO.
        quiet_third_party: Keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.

    Returns:
        The log file actually in use (may be the /tmp fallback), or None.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    effective_level = numeric_level
    active_file: Path | None = None

    # ── File handler ────────────────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        if numeric_level <= logging.DEBUG:
            file_level = min(file_level, numeric_level)
        effective_level = min(effective_level, file_level)

        fh, active_file = _open_log_file(Path(log_file))
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False

    if active_file is not None and active_file != Path(log_file):
        logging.getLogger(__name__).warning(
            "Cannot write %s — using fallback log location: %s", log_file, active_file
        )
    return active_file


def _open_log_file(path: Path) -> tuple[logging.FileHandler, Path]:
    """Open the install log in append mode, falling back to /tmp."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8"), path
    except OSError:
        return (
            logging.FileHandler(FALLBACK_LOG_FILE, mode="a", encoding="utf-8"),
            FALLBACK_LOG_FILE,
        )


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
