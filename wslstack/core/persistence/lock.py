"""
Installation lock — one installer run per host.

The lock is a plain file (``~/.hadoop_install.lock``) whose existence
plus modification time signals an in-progress run.  A lock older than
``stale_after`` seconds is assumed to belong to a crashed run and is
reclaimed; a younger one aborts with ``PreconditionError``.

Use as a context manager so the lock is released on every exit path,
including ``KeyboardInterrupt``::

    with InstallLock(config.lock_file, stale_after=3600):
        executor.run(steps, ctx)
"""

from __future__ import annotations

import logging
import os
import time
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

from wslstack.core.errors import PreconditionError

logger = logging.getLogger(__name__)


class InstallLock:
    """File-based single-instance lock with staleness recovery."""

    def __init__(self, path: Path, stale_after: float = 3600.0) -> None:
        self.path = path
        self.stale_after = stale_after
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def age(self) -> float | None:
        """Seconds since the lock file was last modified, or None if absent."""
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def acquire(self) -> None:
        """Take the lock, reclaiming it if stale.

        Raises:
            PreconditionError: Another run holds a fresh lock.
        """
        age = self.age()
        if age is not None:
            if age > self.stale_after:
                logger.warning(
                    "Stale lock file detected (%ds old), removing: %s", int(age), self.path
                )
                self.path.unlink(missing_ok=True)
            else:
                raise PreconditionError(
                    "Another installation is running.",
                    remedy=f"Wait for it to finish, or delete {self.path} if it crashed.",
                )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as e:
            raise PreconditionError(
                "Another installation is running.",
                remedy=f"Wait for it to finish, or delete {self.path} if it crashed.",
            ) from e
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{os.getpid()} {datetime.now(UTC).isoformat()}\n")
        self._held = True
        logger.debug("Install lock acquired: %s", self.path)

    def release(self) -> None:
        """Drop the lock. Safe to call when not held or already removed."""
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False
        logger.debug("Install lock released: %s", self.path)

    def __enter__(self) -> InstallLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
