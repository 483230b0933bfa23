"""
Tests for the preflight validator.
"""

from pathlib import Path

import pytest

from tests.conftest import FakeRunner
from wslstack.adapters.shell.command import CommandResult
from wslstack.core.errors import PreconditionError
from wslstack.core.services.host import read_total_ram_mb, wsl_flavour
from wslstack.core.services.preflight import HostProbes, PreflightValidator

WSL2 = "Linux version 5.15.153.1-microsoft-standard-WSL2 (gcc)"


def _probes(**overrides) -> HostProbes:
    defaults = dict(
        which=lambda name: f"/usr/bin/{name}",
        cwd=lambda: Path("/home/tester"),
        kernel_version=lambda: WSL2,
        total_ram_mb=lambda: 16384,
        disk_free_mb=lambda path: 100 * 1024,
        path_exists=lambda path: False,
        geteuid=lambda: 1000,
    )
    defaults.update(overrides)
    return HostProbes(**defaults)


def _validate(config, runner=None, confirm=None, interactive=True, **probes):
    return PreflightValidator(
        config,
        runner=runner or FakeRunner(),
        confirm=confirm,
        probes=_probes(**probes),
        interactive=interactive,
    ).validate()


class TestPreflight:

    def test_all_good(self, config):
        report = _validate(config)
        assert report.warnings == []
        assert report.facts["platform"] == "wsl2"
        assert "sudo available" in report.passed

    def test_missing_commands(self, config):
        with pytest.raises(PreconditionError) as exc:
            _validate(config, which=lambda name: None if name in ("nc", "ssh") else "/bin/x")
        assert "nc" in exc.value.message
        assert exc.value.remedy == "sudo apt-get install -y netcat-openbsd openssh-client"

    @pytest.mark.parametrize("cwd", ["/mnt/c/Users/me", "/mnt/d"])
    def test_windows_mount_is_fatal(self, config, cwd: str):
        with pytest.raises(PreconditionError) as exc:
            _validate(config, cwd=lambda: Path(cwd))
        assert exc.value.remedy.startswith("cd ~")

    def test_not_wsl_needs_confirmation(self, config):
        asked: list[str] = []

        def _confirm(msg: str) -> bool:
            asked.append(msg)
            return True

        report = _validate(config, confirm=_confirm, kernel_version=lambda: "Linux version 6.1 generic")
        assert len(asked) == 1
        assert "Not running on WSL" in report.warnings[0]

    def test_declined_warning_aborts(self, config):
        with pytest.raises(PreconditionError, match="Aborted by user"):
            _validate(config, confirm=lambda msg: False, total_ram_mb=lambda: 2048)

    def test_non_interactive_auto_confirms(self, config):
        report = _validate(config, confirm=None, total_ram_mb=lambda: 2048)
        assert any("Low memory" in w for w in report.warnings)

    def test_disk_uses_smaller_of_home_and_windows_drive(self, config):
        free = {str(config.home): 50 * 1024, "/mnt/c": 5 * 1024}
        with pytest.raises(PreconditionError) as exc:
            _validate(
                config,
                path_exists=lambda path: str(path) == "/mnt/c",
                disk_free_mb=lambda path: free[str(path)],
            )
        assert "available: 5GB" in exc.value.message
        assert exc.value.remedy == "sudo apt clean && sudo apt autoremove"

    def test_sudo_prompt_when_interactive(self, config):
        runner = FakeRunner({"sudo -n true": CommandResult(cmd=[], returncode=1)})
        report = _validate(config, runner=runner)
        assert "sudo -v" in runner.lines()
        assert "sudo authenticated" in report.passed

    def test_sudo_unavailable_non_interactive(self, config):
        runner = FakeRunner({"sudo -n true": CommandResult(cmd=[], returncode=1)})
        with pytest.raises(PreconditionError, match="Sudo"):
            _validate(config, runner=runner, interactive=False)
        assert "sudo -v" not in runner.lines()

    def test_root_skips_sudo(self, config):
        runner = FakeRunner()
        report = _validate(config, runner=runner, geteuid=lambda: 0)
        assert runner.calls == []
        assert "running as root" in report.passed


class TestHostFacts:

    @pytest.mark.parametrize(
        "text, flavour",
        [
            (WSL2, "wsl2"),
            ("Linux version 4.4.0-19041-Microsoft", "wsl1"),
            ("Linux version 6.8.0-generic", "native"),
        ],
    )
    def test_wsl_flavour(self, text: str, flavour: str):
        assert wsl_flavour(text) == flavour

    def test_meminfo(self, tmp_path: Path):
        meminfo = tmp_path / "meminfo"
        meminfo.write_text("MemTotal:       16303428 kB\nMemFree:  1 kB\n")
        assert read_total_ram_mb(meminfo) == 15921

    def test_meminfo_missing(self, tmp_path: Path):
        assert read_total_ram_mb(tmp_path / "missing") == 0
