"""
State store — which installation steps have completed.

Plain text, one step name per line (``~/.hadoop_install_state``).
Membership is an exact full-line match, the ``grep -Fx`` contract:
``hadoop`` is NOT done because ``hadoop_install`` is.

Writes are atomic (write to temp file, fsync, then rename) so an
interrupt mid-write leaves either the old file or the new one, never a
torn line.  The installer only ever appends names; ``reset`` exists for
the explicit ``wslstack state reset`` command.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class StateStore:
    """Append-only record of completed step names."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    # ── Reads ───────────────────────────────────────────────────

    def _lines(self) -> list[str]:
        if not self._path.is_file():
            return []
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot read state file %s: %s — treating as empty", self._path, e)
            return []
        return raw.splitlines()

    def contains(self, name: str) -> bool:
        """Whether ``name`` is recorded, by exact full-line match."""
        return name in self._lines()

    def completed(self) -> list[str]:
        """Recorded names, de-duplicated, in first-seen order."""
        seen: dict[str, None] = {}
        for line in self._lines():
            if line:
                seen.setdefault(line, None)
        return list(seen)

    # ── Writes ──────────────────────────────────────────────────

    def mark_done(self, name: str) -> None:
        """Record ``name`` durably. No-op if already present."""
        _check_name(name)
        lines = self._lines()
        if name in lines:
            return
        self._write([*lines, name])
        logger.info("Step recorded as done: %s", name)

    def reset(self, name: str | None = None) -> bool:
        """Forget one step (or every step when ``name`` is None).

        Returns:
            True if something was removed.
        """
        if name is None:
            if self._path.is_file():
                self._path.unlink()
                logger.info("State file removed: %s", self._path)
                return True
            return False

        lines = self._lines()
        kept = [line for line in lines if line != name]
        if len(kept) == len(lines):
            return False
        self._write(kept)
        logger.info("Step marker removed: %s", name)
        return True

    def _write(self, lines: list[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{line}\n" for line in lines)

        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=".state_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise


def _check_name(name: str) -> None:
    if not name or "\n" in name or "\r" in name:
        raise ValueError(f"Invalid step name: {name!r}")
