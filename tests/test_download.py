"""
Tests for the mirrored downloader and archive installation.
"""

import hashlib
import io
import zipfile
from pathlib import Path

import pytest

from tests.conftest import make_tarball
from wslstack.core.errors import DownloadError, ExtractionError, PreconditionError
from wslstack.core.models.download import DownloadTarget
from wslstack.core.services.archive import extract_tarball, install_archive, link_latest
from wslstack.core.services.download import (
    MirroredDownloader,
    apache_target,
    is_valid_archive,
    maven_target,
    verify_checksum,
)


class ScriptedFetcher:
    """Fetcher whose behavior per URL is a source file or an exception."""

    def __init__(self, plan: dict):
        self.plan = plan
        self.calls: list[str] = []

    def __call__(self, url: str, dest: Path, timeout: int) -> None:
        self.calls.append(url)
        outcome = self.plan[url]
        if isinstance(outcome, Exception):
            raise outcome
        dest.write_bytes(Path(outcome).read_bytes())


def _downloader(fetcher, retries: int = 2, sleeps: list | None = None) -> MirroredDownloader:
    record = sleeps if sleeps is not None else []
    return MirroredDownloader(
        max_retries_per_mirror=retries,
        backoff_seconds=2.0,
        fetcher=fetcher,
        sleep=record.append,
    )


class TestArchiveChecks:

    def test_valid_tarball(self, tmp_path: Path):
        assert is_valid_archive(make_tarball(tmp_path / "a.tar.gz", "pkg"))

    def test_garbage_is_invalid(self, tmp_path: Path):
        bad = tmp_path / "a.tar.gz"
        bad.write_bytes(b"<html>404 Not Found</html>" * 100)
        assert not is_valid_archive(bad)

    def test_truncated_tarball_is_invalid(self, tmp_path: Path):
        good = make_tarball(tmp_path / "good.tar.gz", "pkg", pad=200_000)
        cut = tmp_path / "cut.tar.gz"
        cut.write_bytes(good.read_bytes()[:500])
        assert not is_valid_archive(cut)

    def test_jar_checked_as_zip(self, tmp_path: Path):
        jar = tmp_path / "connector.jar"
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        jar.write_bytes(buf.getvalue())
        assert is_valid_archive(jar)

    def test_checksum(self, tmp_path: Path):
        f = tmp_path / "f"
        f.write_bytes(b"payload")
        digest = hashlib.sha256(b"payload").hexdigest()
        assert verify_checksum(f, f"sha256:{digest}")
        assert not verify_checksum(f, "sha256:" + "0" * 64)


class TestMirroredDownloader:

    def test_fallback_to_secondary(self, tmp_path: Path):
        good = make_tarball(tmp_path / "src.tar.gz", "pkg", {"secondary": b"yes"})
        dest = tmp_path / "out" / "pkg.tar.gz"
        fetcher = ScriptedFetcher({
            "https://a/pkg.tar.gz": OSError("connection refused"),
            "https://b/pkg.tar.gz": good,
        })
        sleeps: list[float] = []
        target = DownloadTarget(
            primary_url="https://a/pkg.tar.gz",
            mirror_urls=["https://b/pkg.tar.gz"],
            destination=dest,
            min_size_bytes=0,
        )

        path = _downloader(fetcher, retries=3, sleeps=sleeps).download(target)

        assert path == dest
        assert dest.read_bytes() == good.read_bytes()
        assert fetcher.calls == ["https://a/pkg.tar.gz"] * 3 + ["https://b/pkg.tar.gz"]
        assert sleeps == [2.0, 2.0]
        assert not dest.with_name("pkg.tar.gz.part").exists()

    def test_all_mirrors_exhausted_leaves_nothing(self, tmp_path: Path):
        small = tmp_path / "small.tar.gz"
        small.write_bytes(b"tiny")
        corrupt = tmp_path / "corrupt.tar.gz"
        corrupt.write_bytes(b"\x1f\x8b" + b"x" * 5000)
        dest = tmp_path / "out" / "pkg.tar.gz"
        fetcher = ScriptedFetcher({"https://a/p": small, "https://b/p": corrupt})
        target = DownloadTarget(
            primary_url="https://a/p",
            mirror_urls=["https://b/p"],
            destination=dest,
            min_size_bytes=1000,
        )

        with pytest.raises(DownloadError) as exc:
            _downloader(fetcher).download(target)

        assert exc.value.artifact == "pkg.tar.gz"
        assert len(exc.value.attempts) == 4
        assert "too small" in exc.value.attempts[0]
        assert "not a readable archive" in exc.value.attempts[-1]
        assert list((tmp_path / "out").iterdir()) == []

    def test_short_download_rejected(self, tmp_path: Path):
        good = make_tarball(tmp_path / "good.tar.gz", "pkg", pad=200_000)
        cut = tmp_path / "cut.tar.gz"
        cut.write_bytes(good.read_bytes()[:500])
        dest = tmp_path / "out" / "pkg.tar.gz"
        fetcher = ScriptedFetcher({"https://a/p": cut, "https://b/p": good})
        target = DownloadTarget(
            primary_url="https://a/p",
            mirror_urls=["https://b/p"],
            destination=dest,
            min_size_bytes=0,
        )

        _downloader(fetcher, retries=1).download(target)

        assert fetcher.calls == ["https://a/p", "https://b/p"]
        assert dest.read_bytes() == good.read_bytes()

    def test_interrupt_removes_partial_file(self, tmp_path: Path):
        dest = tmp_path / "out" / "pkg.tar.gz"

        def _interrupted(url: str, part: Path, timeout: int) -> None:
            part.write_bytes(b"half a download")
            raise KeyboardInterrupt

        target = DownloadTarget(primary_url="https://a/p", destination=dest, min_size_bytes=0)

        with pytest.raises(KeyboardInterrupt):
            _downloader(_interrupted).download(target)
        assert list((tmp_path / "out").iterdir()) == []

    def test_stale_destination_replaced(self, tmp_path: Path):
        good = make_tarball(tmp_path / "src.tar.gz", "pkg")
        dest = tmp_path / "pkg.tar.gz"
        dest.write_bytes(b"leftover from a crashed run")
        target = DownloadTarget(primary_url="https://a/p", destination=dest, min_size_bytes=0)

        _downloader(ScriptedFetcher({"https://a/p": good})).download(target)

        assert dest.read_bytes() == good.read_bytes()

    def test_checksum_mismatch_rejected(self, tmp_path: Path):
        good = make_tarball(tmp_path / "src.tar.gz", "pkg")
        target = DownloadTarget(
            primary_url="https://a/p",
            destination=tmp_path / "pkg.tar.gz",
            min_size_bytes=0,
            checksum="sha256:" + "0" * 64,
        )
        with pytest.raises(DownloadError) as exc:
            _downloader(ScriptedFetcher({"https://a/p": good}), retries=1).download(target)
        assert "checksum mismatch" in exc.value.attempts[0]

    def test_file_url_with_real_fetcher(self, tmp_path: Path):
        src = make_tarball(tmp_path / "src.tar.gz", "pkg")
        dest = tmp_path / "out" / "pkg.tar.gz"
        target = DownloadTarget(
            primary_url=src.as_uri(), destination=dest, min_size_bytes=0
        )
        MirroredDownloader(sleep=lambda s: None).download(target)
        assert dest.read_bytes() == src.read_bytes()


class TestTargets:

    def test_apache_target_mirror_order(self, config):
        target = apache_target(config, "/hadoop/common/hadoop-3.4.2/", "hadoop-3.4.2.tar.gz")
        assert target.urls == [
            "https://mirror-a.example/hadoop/common/hadoop-3.4.2/hadoop-3.4.2.tar.gz",
            "https://mirror-b.example/hadoop/common/hadoop-3.4.2/hadoop-3.4.2.tar.gz",
        ]
        assert target.destination == config.install_dir / "hadoop-3.4.2.tar.gz"

    def test_maven_target(self, config, tmp_path: Path):
        target = maven_target(config, "mysql", "mysql-connector-java", "8.0.30", tmp_path / "c.jar")
        assert target.primary_url == (
            "https://repo1.maven.org/maven2/mysql/mysql-connector-java/8.0.30/"
            "mysql-connector-java-8.0.30.jar"
        )

    def test_bad_checksum_format(self, tmp_path: Path):
        with pytest.raises(ValueError):
            DownloadTarget(primary_url="u", destination=tmp_path / "f", checksum="deadbeef")


class TestInstallArchive:

    def _target(self, dest: Path) -> DownloadTarget:
        return DownloadTarget(primary_url="https://a/p", destination=dest, min_size_bytes=0)

    def test_download_extract_link(self, tmp_path: Path):
        src = make_tarball(tmp_path / "src.tar.gz", "pig-0.17.0", {"bin/pig": b"#!/bin/sh\n"})
        install_dir = tmp_path / "bigdata"
        archive = install_dir / "pig-0.17.0.tar.gz"

        link = install_archive(
            self._target(archive),
            install_dir,
            "pig-0.17.0",
            "pig",
            _downloader(ScriptedFetcher({"https://a/p": src})),
        )

        assert link.is_symlink()
        assert (link / "bin" / "pig").read_bytes() == b"#!/bin/sh\n"
        assert not archive.exists()

    def test_existing_directory_skips_download(self, tmp_path: Path):
        install_dir = tmp_path / "bigdata"
        (install_dir / "pig-0.17.0").mkdir(parents=True)
        fetcher = ScriptedFetcher({})

        install_archive(
            self._target(install_dir / "pig.tar.gz"),
            install_dir,
            "pig-0.17.0",
            "pig",
            _downloader(fetcher),
        )

        assert fetcher.calls == []
        assert (install_dir / "pig").resolve() == (install_dir / "pig-0.17.0").resolve()

    def test_link_is_repointed(self, tmp_path: Path):
        (tmp_path / "old").mkdir()
        (tmp_path / "new").mkdir()
        link = tmp_path / "hadoop"
        link_latest(link, "old")
        link_latest(link, "new")
        assert link.resolve() == (tmp_path / "new").resolve()

    def test_real_directory_blocks_link(self, tmp_path: Path):
        (tmp_path / "hadoop").mkdir()
        with pytest.raises(PreconditionError):
            link_latest(tmp_path / "hadoop", "hadoop-3.4.2")

    def test_unexpected_layout(self, tmp_path: Path):
        src = make_tarball(tmp_path / "src.tar.gz", "something-else")
        with pytest.raises(ExtractionError, match="did not contain"):
            install_archive(
                self._target(tmp_path / "bigdata" / "x.tar.gz"),
                tmp_path / "bigdata",
                "pig-0.17.0",
                "pig",
                _downloader(ScriptedFetcher({"https://a/p": src})),
            )

    def test_extraction_failure_deletes_archive(self, tmp_path: Path):
        bad = tmp_path / "bad.tar.gz"
        bad.write_bytes(b"not a tarball")
        with pytest.raises(ExtractionError):
            extract_tarball(bad, tmp_path / "out")
        assert not bad.exists()
