"""
Mirrored downloader — fetch one artifact from an ordered list of URLs.

For each URL in order, up to ``max_retries_per_mirror`` attempts:
fetch into ``<destination>.part``, reject it if too small or not a
listable archive (or, when a checksum is given, if the digest differs),
otherwise rename it into place.  A file at ``destination`` is therefore
always complete and structurally valid; nothing is left behind when
every mirror is exhausted.

Fetching uses ``urllib.request`` streamed in chunks with progress
logged every 5%.  The fetcher is injectable for tests.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tarfile
import time
import urllib.request
import zipfile
from collections.abc import Callable
from pathlib import Path

from wslstack.core.errors import DownloadError
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.download import DownloadTarget

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, Path, int], None]

_USER_AGENT = "wslstack/0.1"
_CHUNK = 64 * 1024
_ZIP_SUFFIXES = (".jar", ".zip")


# ── Integrity ───────────────────────────────────────────────────


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def is_valid_archive(path: Path, *, as_zip: bool | None = None) -> bool:
    """Structural check: can the whole archive be read?

    Tarballs (plain or compressed) are opened with ``tarfile``, fully
    iterated, and the decompressed stream is drained to its end so a
    truncated gzip raises instead of looking like end-of-archive.
    ``.jar``/``.zip`` files are CRC-checked with ``zipfile``.
    """
    if as_zip is None:
        as_zip = path.suffix.lower() in _ZIP_SUFFIXES
    try:
        if as_zip:
            if not zipfile.is_zipfile(path):
                return False
            with zipfile.ZipFile(path) as zf:
                return zf.testzip() is None
        with tarfile.open(path, "r:*") as tf:
            for _ in tf:
                pass
            while tf.fileobj.read(_CHUNK):
                pass
        return True
    except (OSError, tarfile.TarError, zipfile.BadZipFile, EOFError):
        return False


def verify_checksum(path: Path, expected: str) -> bool:
    """Verify file checksum.  Format: ``algo:hex`` (sha256, sha512, sha1, md5)."""
    algo, expected_hash = expected.split(":", 1)
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest().lower() == expected_hash.strip().lower()


# ── Fetch ───────────────────────────────────────────────────────


def urllib_fetch(url: str, dest: Path, timeout: int) -> None:
    """Stream ``url`` into ``dest``. Raises on any network or HTTP error."""
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as f:
        total = int(resp.headers.get("Content-Length") or 0)
        downloaded = 0
        last_progress = -5
        while True:
            chunk = resp.read(_CHUNK)
            if not chunk:
                break
            f.write(chunk)
            downloaded += len(chunk)
            if total > 0:
                pct = int(downloaded * 100 / total)
                if pct >= last_progress + 5:
                    last_progress = pct
                    logger.info(
                        "Download progress: %d%% (%s / %s)",
                        pct, _fmt_size(downloaded), _fmt_size(total),
                    )


# ── Downloader ──────────────────────────────────────────────────


class MirroredDownloader:
    """Retrying, mirror-aware artifact fetcher."""

    def __init__(
        self,
        max_retries_per_mirror: int = 2,
        backoff_seconds: float = 2.0,
        timeout: int = 60,
        *,
        fetcher: Fetcher | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_retries_per_mirror = max_retries_per_mirror
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.fetcher = fetcher or urllib_fetch
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: InstallerConfig, **kwargs) -> MirroredDownloader:
        return cls(
            max_retries_per_mirror=config.download.max_retries_per_mirror,
            backoff_seconds=config.download.backoff_seconds,
            timeout=config.download.timeout_seconds,
            **kwargs,
        )

    def download(self, target: DownloadTarget) -> Path:
        """Fetch ``target`` and return its destination path.

        Raises:
            DownloadError: Every attempt on every URL failed.
        """
        dest = target.destination
        part = dest.with_name(dest.name + ".part")
        dest.parent.mkdir(parents=True, exist_ok=True)
        as_zip = dest.suffix.lower() in _ZIP_SUFFIXES
        errors: list[str] = []

        try:
            for url in target.urls:
                for attempt in range(1, self.max_retries_per_mirror + 1):
                    dest.unlink(missing_ok=True)
                    part.unlink(missing_ok=True)
                    logger.info(
                        "Downloading %s (attempt %d/%d): %s",
                        target.name, attempt, self.max_retries_per_mirror, url,
                    )

                    try:
                        self.fetcher(url, part, self.timeout)
                    except Exception as e:
                        part.unlink(missing_ok=True)
                        errors.append(f"{url} (attempt {attempt}): {e}")
                        logger.warning("Fetch failed for %s: %s", url, e)
                        if attempt < self.max_retries_per_mirror:
                            self.sleep(self.backoff_seconds)
                        continue

                    problem = self._check(part, target, as_zip)
                    if problem:
                        part.unlink(missing_ok=True)
                        errors.append(f"{url} (attempt {attempt}): {problem}")
                        logger.warning("Rejected %s from %s: %s", target.name, url, problem)
                        continue

                    os.replace(part, dest)
                    logger.info("Downloaded %s (%s)", dest, _fmt_size(dest.stat().st_size))
                    return dest

                logger.info("Mirror exhausted for %s: %s", target.name, url)
        finally:
            # interrupted or not, no partial file survives
            part.unlink(missing_ok=True)

        dest.unlink(missing_ok=True)
        raise DownloadError(
            f"Failed to download {target.name}: all mirrors exhausted",
            artifact=target.name,
            attempts=errors,
            remedy="Check network connectivity, then re-run the installer to resume.",
        )

    @staticmethod
    def _check(path: Path, target: DownloadTarget, as_zip: bool) -> str:
        size = path.stat().st_size if path.exists() else 0
        if size < target.min_size_bytes:
            return f"file too small ({size} bytes < {target.min_size_bytes})"
        if not is_valid_archive(path, as_zip=as_zip):
            return "not a readable archive"
        if target.checksum and not verify_checksum(path, target.checksum):
            return "checksum mismatch"
        return ""


# ── Targets ─────────────────────────────────────────────────────


def apache_target(
    config: InstallerConfig,
    path: str,
    filename: str,
    checksum: str | None = None,
) -> DownloadTarget:
    """Artifact under ``<mirror>/<path>/<filename>`` on every Apache mirror.

    The archive lands in ``install_dir`` next to where it is extracted.
    """
    path = path.strip("/")
    urls = [f"{base}/{path}/{filename}" for base in config.apache_mirrors]
    return DownloadTarget(
        primary_url=urls[0],
        mirror_urls=urls[1:],
        destination=config.install_dir / filename,
        min_size_bytes=config.download.min_size_bytes,
        checksum=checksum,
    )


def maven_target(
    config: InstallerConfig,
    group: str,
    artifact: str,
    version: str,
    destination: Path,
) -> DownloadTarget:
    """A jar from Maven Central (or its configured mirrors)."""
    filename = f"{artifact}-{version}.jar"
    rel = f"{group.replace('.', '/')}/{artifact}/{version}/{filename}"
    urls = [f"{base.rstrip('/')}/{rel}" for base in config.maven_mirrors]
    return DownloadTarget(
        primary_url=urls[0],
        mirror_urls=urls[1:],
        destination=destination,
        min_size_bytes=config.download.min_size_bytes,
    )
