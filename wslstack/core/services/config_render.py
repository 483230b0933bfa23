"""
Config materializer — render and write vendor configuration files.

Renderers are pure functions returning text; each format has a real
serializer so values with reserved characters cannot corrupt the file:

    render_hadoop_xml    Hadoop ``*-site.xml`` (lxml)
    render_properties    Java ``.properties`` (Kafka)
    render_env_exports   POSIX ``export`` lines (shlex quoting)
    render_template      ``@@KEY@@`` substitution for free-form files

``write_config`` writes atomically and applies the file mode.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from wslstack.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

YARN_MEMORY_CEILING_MB = 4096
YARN_MEMORY_SHARE_PCT = 70

_SENTINEL = re.compile(r"@@([A-Za-z0-9_]+)@@")
_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ── Memory plan ─────────────────────────────────────────────────


@dataclass(frozen=True)
class MemoryPlan:
    """YARN memory sizing derived from total system memory."""

    total_mb: int
    yarn_mb: int
    container_mb: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_mb": self.total_mb,
            "yarn_mb": self.yarn_mb,
            "container_mb": self.container_mb,
        }


def compute_memory(total_mb: int) -> MemoryPlan:
    """70% of total memory capped at 4096 MB; containers get half (truncated)."""
    if total_mb <= 0:
        raise ConfigurationError(f"Invalid total memory: {total_mb} MB")
    yarn_mb = min(total_mb * YARN_MEMORY_SHARE_PCT // 100, YARN_MEMORY_CEILING_MB)
    return MemoryPlan(total_mb=total_mb, yarn_mb=yarn_mb, container_mb=yarn_mb // 2)


# ── Renderers ───────────────────────────────────────────────────


def render_hadoop_xml(properties: Mapping[str, object]) -> str:
    """Render a Hadoop-style ``<configuration>`` document."""
    root = etree.Element("configuration")
    for name, value in properties.items():
        prop = etree.SubElement(root, "property")
        etree.SubElement(prop, "name").text = str(name)
        etree.SubElement(prop, "value").text = str(value)
    return etree.tostring(
        etree.ElementTree(root),
        xml_declaration=True,
        pretty_print=True,
        encoding="UTF-8",
    ).decode("utf-8")


def _escape_property(text: str, *, is_key: bool) -> str:
    out: list[str] = []
    for i, ch in enumerate(text):
        if ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch in "=:#!":
            out.append("\\" + ch)
        elif ch == " " and (is_key or i == 0):
            out.append("\\ ")
        else:
            out.append(ch)
    return "".join(out)


def render_properties(mapping: Mapping[str, object], header: str | None = None) -> str:
    """Render a Java ``.properties`` file, one ``key=value`` per line."""
    lines: list[str] = []
    if header:
        lines.extend(f"# {line}" for line in header.splitlines())
    for key, value in mapping.items():
        lines.append(
            f"{_escape_property(str(key), is_key=True)}="
            f"{_escape_property(str(value), is_key=False)}"
        )
    return "\n".join(lines) + "\n"


def render_env_exports(
    mapping: Mapping[str, object],
    header: str | None = None,
    path_entries: Iterable[str] = (),
) -> str:
    """Render ``export NAME=value`` lines, values shell-quoted.

    ``path_entries`` are prepended to the inherited ``$PATH``.
    """
    lines: list[str] = []
    if header:
        lines.extend(f"# {line}" for line in header.splitlines())
    for name, value in mapping.items():
        if not _ENV_NAME.match(name):
            raise ConfigurationError(f"Invalid environment variable name: {name!r}")
        lines.append(f"export {name}={shlex.quote(str(value))}")
    entries = [str(e) for e in path_entries]
    if entries:
        lines.append(f'export PATH={shlex.quote(":".join(entries))}:"$PATH"')
    return "\n".join(lines) + "\n"


def render_template(text: str, values: Mapping[str, object]) -> str:
    """Replace every ``@@KEY@@`` occurrence with ``values[KEY]``.

    Raises:
        ConfigurationError: A sentinel has no value.
    """
    missing: set[str] = set()

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            missing.add(key)
            return match.group(0)
        return str(values[key])

    rendered = _SENTINEL.sub(_sub, text)
    if missing:
        raise ConfigurationError(
            f"Unresolved template placeholders: {', '.join(sorted(missing))}"
        )
    return rendered


# ── Write ───────────────────────────────────────────────────────


def write_config(path: Path, content: str, mode: int = 0o644) -> Path:
    """Atomically write ``content`` to ``path`` with permission ``mode``.

    Raises:
        ConfigurationError: The parent directory is missing or unwritable.
    """
    if not path.parent.is_dir():
        raise ConfigurationError(
            f"Cannot write {path}: directory {path.parent} does not exist",
            remedy="Re-run the component's install step so its files are extracted.",
        )
    try:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise ConfigurationError(f"Cannot write {path}: {e}") from e

    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise ConfigurationError(f"Cannot write {path}: {e}") from e

    logger.info("Wrote %s (mode %o)", path, mode)
    return path


def append_once(path: Path, marker: str, block: str) -> bool:
    """Append ``block`` to ``path`` unless a line equal to ``marker`` is present.

    Returns:
        True if the block was appended.
    """
    existing = path.read_text(encoding="utf-8") if path.is_file() else ""
    if marker in existing.splitlines():
        return False
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    body = block if block.endswith("\n") else block + "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{prefix}\n{marker}\n{body}")
    logger.info("Appended block %r to %s", marker, path)
    return True
