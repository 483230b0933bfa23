"""
System preparation — apt packages, IPv6, passwordless SSH to localhost.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wslstack.adapters.shell.command import best_effort
from wslstack.core.engine.context import StepContext
from wslstack.core.errors import PreconditionError
from wslstack.core.models.step import InstallStep
from wslstack.core.services.config_render import append_once

logger = logging.getLogger(__name__)

SYSTEM_PACKAGES: tuple[str, ...] = (
    "openjdk-11-jdk",
    "openjdk-17-jdk",
    "wget",
    "curl",
    "ssh",
    "netcat-openbsd",
    "vim",
    "net-tools",
    "rsync",
    "tar",
    "gzip",
    "unzip",
    "util-linux",
    "file",
    "mysql-server",
)

SYSCTL_CONF = Path("/etc/sysctl.conf")
IPV6_LINES = (
    "net.ipv6.conf.all.disable_ipv6=1\n"
    "net.ipv6.conf.default.disable_ipv6=1\n"
    "net.ipv6.conf.lo.disable_ipv6=1\n"
)

SSH_CONFIG_MARKER = "# wslstack: localhost"
SSH_CONFIG_BLOCK = """Host localhost 127.0.0.1 0.0.0.0
    StrictHostKeyChecking no
    UserKnownHostsFile /dev/null
    LogLevel ERROR
"""


def install_packages(ctx: StepContext) -> None:
    runner = ctx.runner
    if not best_effort(runner.run(["apt-get", "update", "-qq"], sudo=True, timeout=900), "apt-get update"):
        ctx.warn("system_setup", "Package update had warnings, continuing")

    ctx.info("system_setup", f"Installing {len(SYSTEM_PACKAGES)} packages")
    runner.run(
        ["apt-get", "install", "-y", "-qq", *SYSTEM_PACKAGES],
        sudo=True,
        env={"DEBIAN_FRONTEND": "noninteractive"},
        timeout=3600,
    ).check(remedy="Check your internet connection, then re-run the installer.")

    java_bin = ctx.config.java_home / "bin" / "java"
    best_effort(
        runner.run(["update-alternatives", "--set", "java", str(java_bin)], sudo=True),
        "Selecting Java 11 as default",
    )


def disable_ipv6(ctx: StepContext, sysctl_conf: Path = SYSCTL_CONF) -> None:
    """Append the IPv6-disable lines once; Hadoop binds IPv4 only."""
    try:
        current = sysctl_conf.read_text(encoding="utf-8")
    except OSError:
        current = ""
    if "disable_ipv6" in current:
        return
    runner = ctx.runner
    if best_effort(
        runner.run(["tee", "-a", str(sysctl_conf)], sudo=True, input=IPV6_LINES),
        "Disabling IPv6",
    ):
        best_effort(runner.run(["sysctl", "-p"], sudo=True), "Reloading sysctl")


def setup_ssh(ctx: StepContext) -> None:
    """Key pair, authorized_keys entry and a relaxed localhost host block."""
    ssh_dir = ctx.config.ssh_dir
    ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    ssh_dir.chmod(0o700)

    key = ssh_dir / "id_rsa"
    pub = ssh_dir / "id_rsa.pub"
    if not key.exists():
        ctx.runner.run(
            ["ssh-keygen", "-t", "rsa", "-P", "", "-f", str(key), "-q"]
        ).check(remedy=f"Generate a key manually: ssh-keygen -t rsa -P '' -f {key}")

    if not pub.is_file():
        raise PreconditionError(
            f"SSH public key missing: {pub}",
            remedy=f"Regenerate it: ssh-keygen -y -f {key} > {pub}",
        )
    public_key = pub.read_text(encoding="utf-8").strip()
    authorized = ssh_dir / "authorized_keys"
    existing = authorized.read_text(encoding="utf-8").splitlines() if authorized.is_file() else []
    if public_key not in existing:
        with open(authorized, "a", encoding="utf-8") as f:
            f.write(public_key + "\n")

    config_file = ssh_dir / "config"
    append_once(config_file, SSH_CONFIG_MARKER, SSH_CONFIG_BLOCK)

    for path, mode in ((key, 0o600), (authorized, 0o600), (config_file, 0o600), (pub, 0o644)):
        path.chmod(mode)


def start_system_services(ctx: StepContext) -> None:
    for service in ("ssh", "mysql"):
        best_effort(
            ctx.runner.run(["service", service, "start"], sudo=True, timeout=120),
            f"Starting {service}",
        )


def system_setup(ctx: StepContext) -> None:
    install_packages(ctx)
    disable_ipv6(ctx)
    setup_ssh(ctx)
    start_system_services(ctx)


def java_setup(ctx: StepContext) -> None:
    """Both JDKs must exist: Java 11 for Hadoop/Spark/Hive, Java 17 for Kafka."""
    for home, version in ((ctx.config.java_home, 11), (ctx.config.java17_home, 17)):
        require_java(home, version)


def require_java(home: Path, version: int) -> None:
    if not home.is_dir():
        raise PreconditionError(
            f"Java {version} not found at {home}",
            remedy=f"sudo apt-get install -y openjdk-{version}-jdk",
        )


STEPS = [
    InstallStep("system_setup", system_setup, "System dependencies"),
    InstallStep("java_setup", java_setup, "Java 11 and 17"),
]
