"""
Archive installation — download, extract, link.

A component is "installed" when ``<install_dir>/<expected_dir>`` exists;
the versionless symlink (``hadoop`` → ``hadoop-3.4.2``) is recreated on
every run so a version bump re-points it.
"""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path

from wslstack.core.errors import ExtractionError, PreconditionError
from wslstack.core.models.download import DownloadTarget
from wslstack.core.services.download import MirroredDownloader

logger = logging.getLogger(__name__)


def extract_tarball(archive: Path, extract_dir: Path) -> None:
    """Extract ``archive`` into ``extract_dir``.

    Members that would land outside the directory, device files and
    absolute links are rejected by the ``data`` filter.

    Raises:
        ExtractionError: The archive is unreadable; it has been deleted.
    """
    try:
        with tarfile.open(archive, "r:*") as tf:
            tf.extractall(extract_dir, filter="data")
    except (OSError, tarfile.TarError, EOFError) as e:
        archive.unlink(missing_ok=True)
        raise ExtractionError(
            f"Failed to extract {archive.name}: {e}",
            artifact=archive.name,
            remedy="The archive was deleted; re-run the installer to fetch it again.",
        ) from e


def link_latest(link: Path, target_name: str) -> None:
    """Point ``link`` at the sibling directory ``target_name``, replacing any old link."""
    if link.is_symlink():
        link.unlink()
    elif link.exists():
        raise PreconditionError(
            f"{link} exists and is not a symlink.",
            remedy=f"Move it aside: mv {link} {link}.bak",
        )
    link.symlink_to(target_name, target_is_directory=True)
    logger.debug("Linked %s -> %s", link, target_name)


def install_archive(
    target: DownloadTarget,
    extract_dir: Path,
    expected_dir: str,
    link_name: str,
    downloader: MirroredDownloader,
) -> Path:
    """Make ``extract_dir/expected_dir`` exist and link it as ``link_name``.

    Returns:
        The path of the versionless symlink.
    """
    extract_dir.mkdir(parents=True, exist_ok=True)
    installed = extract_dir / expected_dir

    if installed.is_dir():
        logger.info("%s already extracted, skipping download", installed)
    else:
        archive = downloader.download(target)
        logger.info("Extracting %s into %s", archive.name, extract_dir)
        extract_tarball(archive, extract_dir)
        archive.unlink(missing_ok=True)
        if not installed.is_dir():
            raise ExtractionError(
                f"{archive.name} did not contain {expected_dir}/",
                artifact=archive.name,
            )

    link = extract_dir / link_name
    link_latest(link, expected_dir)
    return link
