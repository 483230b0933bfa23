"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from wslstack.adapters.shell.command import CommandResult
from wslstack.core.engine.context import StepContext
from wslstack.core.models.config import InstallerConfig


class FakeRunner:
    """Records commands instead of running them.

    ``responses`` maps a substring of the command line to the result
    returned for matching commands; everything else succeeds.
    """

    def __init__(self, responses: dict[str, CommandResult] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[dict] = []

    def run(self, cmd, *, sudo=False, input=None, env=None, cwd=None, timeout=None):
        self.calls.append({"cmd": list(cmd), "sudo": sudo, "input": input, "env": env})
        line = " ".join(cmd)
        for needle, result in self.responses.items():
            if needle in line:
                return result
        return CommandResult(cmd=list(cmd), returncode=0)

    def lines(self) -> list[str]:
        return [" ".join(c["cmd"]) for c in self.calls]


def make_tarball(path: Path, top: str, files: dict[str, bytes] | None = None, pad: int = 0) -> Path:
    """Write a gzip tarball with one top-level directory."""
    files = files or {"README": b"hello\n"}
    if pad:
        files = {**files, "padding.bin": b"\0" * pad}
    with tarfile.open(path, "w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def config(tmp_path: Path) -> InstallerConfig:
    """A config rooted entirely under ``tmp_path``."""
    home = tmp_path / "home"
    home.mkdir()
    return InstallerConfig(
        user="tester",
        home=home,
        install_dir=home / "bigdata",
        state_file=home / ".hadoop_install_state",
        lock_file=home / ".hadoop_install.lock",
        log_file=home / "hadoop_install.log",
        env_file=home / ".bigdata_env",
        bashrc=home / ".bashrc",
        java_home=tmp_path / "jvm" / "java-11",
        java17_home=tmp_path / "jvm" / "java-17",
        apache_mirrors=["https://mirror-a.example", "https://mirror-b.example"],
        download={"max_retries_per_mirror": 2, "backoff_seconds": 0, "min_size_bytes": 0},
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def step_ctx(config: InstallerConfig, runner: FakeRunner) -> StepContext:
    """StepContext whose collaborators never touch the host."""
    from wslstack.core.services.download import MirroredDownloader
    from wslstack.core.services.supervisor import ServiceSupervisor

    return StepContext(
        config=config,
        runner=runner,
        downloader=MirroredDownloader(backoff_seconds=0, sleep=lambda s: None),
        supervisor=ServiceSupervisor(runner, sleep=lambda s: None, probe_port=lambda p, h: True),
    )
