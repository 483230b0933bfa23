"""
InstallerConfig — the one immutable configuration object.

Built once at startup by ``core.config.loader.load_config`` and passed
explicitly into every step, the downloader and the supervisor.  Nothing
in the installer reads ``os.environ`` after this object exists; derived
paths (``hadoop_home`` …) are computed here so every rendered file sees
the same absolute values.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _default_user() -> str:
    return os.environ.get("USER") or os.environ.get("LOGNAME") or "hadoop"


def _home() -> Path:
    return Path.home()


class ComponentVersions(BaseModel):
    """Vendor versions of every installed component."""

    model_config = ConfigDict(frozen=True)

    hadoop: str = "3.4.2"
    spark: str = "3.5.8"
    spark_hadoop_profile: str = "hadoop3"
    kafka: str = "4.1.1"
    kafka_scala: str = "2.13"
    pig: str = "0.17.0"
    hive: str = "3.1.3"
    mysql_connector: str = "8.0.30"


class DownloadSettings(BaseModel):
    """Retry and integrity policy for the mirrored downloader."""

    model_config = ConfigDict(frozen=True)

    max_retries_per_mirror: int = Field(default=2, ge=1)
    backoff_seconds: float = Field(default=2.0, ge=0)
    timeout_seconds: int = Field(default=60, ge=1)
    min_size_bytes: int = Field(default=1_000_000, ge=0)


# command → apt package that provides it
DEFAULT_REQUIRED_COMMANDS: dict[str, str] = {
    "tar": "tar",
    "ssh": "openssh-client",
    "ssh-keygen": "openssh-client",
    "awk": "gawk",
    "grep": "grep",
    "sed": "sed",
    "nc": "netcat-openbsd",
}


class PreflightSettings(BaseModel):
    """Thresholds for the environment gate."""

    model_config = ConfigDict(frozen=True)

    min_memory_gb: int = 6
    min_disk_gb: int = 12
    required_commands: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_REQUIRED_COMMANDS)
    )
    slow_mount_prefix: str = "/mnt/"


class HiveDatabase(BaseModel):
    """Metastore database credentials (MySQL)."""

    model_config = ConfigDict(frozen=True)

    name: str = "metastore"
    user: str = "hiveuser"
    password: str = "hivepassword"
    host: str = "localhost"
    port: int = 3306


class InstallerConfig(BaseModel):
    """Immutable installer configuration.

    Defaults match the shell installers; YAML and environment
    overrides are applied by the loader before construction.
    """

    model_config = ConfigDict(frozen=True)

    # ── Identity ────────────────────────────────────────────────
    user: str = Field(default_factory=_default_user)
    home: Path = Field(default_factory=_home)

    # ── Layout ──────────────────────────────────────────────────
    install_dir: Path = Field(default_factory=lambda: _home() / "bigdata")
    state_file: Path = Field(default_factory=lambda: _home() / ".hadoop_install_state")
    lock_file: Path = Field(default_factory=lambda: _home() / ".hadoop_install.lock")
    log_file: Path = Field(default_factory=lambda: _home() / "hadoop_install.log")
    env_file: Path = Field(default_factory=lambda: _home() / ".bigdata_env")
    bashrc: Path = Field(default_factory=lambda: _home() / ".bashrc")

    # ── Java ────────────────────────────────────────────────────
    java_home: Path = Path("/usr/lib/jvm/java-11-openjdk-amd64")
    java17_home: Path = Path("/usr/lib/jvm/java-17-openjdk-amd64")

    # ── Components ──────────────────────────────────────────────
    versions: ComponentVersions = Field(default_factory=ComponentVersions)
    apache_mirrors: list[str] = Field(
        default_factory=lambda: [
            "https://dlcdn.apache.org",
            "https://downloads.apache.org",
            "https://archive.apache.org/dist",
        ]
    )
    maven_mirrors: list[str] = Field(
        default_factory=lambda: ["https://repo1.maven.org/maven2"]
    )

    # ── Policies ────────────────────────────────────────────────
    download: DownloadSettings = Field(default_factory=DownloadSettings)
    preflight: PreflightSettings = Field(default_factory=PreflightSettings)
    lock_stale_seconds: int = 3600
    hive_db: HiveDatabase = Field(default_factory=HiveDatabase)

    @field_validator("install_dir", "state_file", "lock_file", "log_file", "env_file", "bashrc", "home")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        # rendered configs must never depend on the consumer's cwd
        return Path(os.path.expanduser(str(value))).absolute()

    @field_validator("apache_mirrors")
    @classmethod
    def _mirrors_present(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one Apache mirror is required")
        return [v.rstrip("/") for v in value]

    # ── Derived paths ───────────────────────────────────────────

    @property
    def hadoop_home(self) -> Path:
        return self.install_dir / "hadoop"

    @property
    def hadoop_conf_dir(self) -> Path:
        return self.hadoop_home / "etc" / "hadoop"

    @property
    def spark_home(self) -> Path:
        return self.install_dir / "spark"

    @property
    def kafka_home(self) -> Path:
        return self.install_dir / "kafka"

    @property
    def pig_home(self) -> Path:
        return self.install_dir / "pig"

    @property
    def hive_home(self) -> Path:
        return self.install_dir / "hive"

    @property
    def hdfs_bin(self) -> Path:
        return self.hadoop_home / "bin" / "hdfs"

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"
