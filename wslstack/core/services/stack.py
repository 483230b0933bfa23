"""
Stack services — the daemon set, its start order and its status probes.

Start order (each stage must be ready before the next begins):

    ssh, mysql (if Hive) → HDFS → safe mode OFF → YARN
        → HDFS directories → Hive schema + metastore (if Hive)
        → Kafka (if Kafka)

Stopping walks the same list backwards.  Optional daemons are only
touched when their install step is recorded in the state store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wslstack.adapters.shell.command import CommandRunner, best_effort
from wslstack.core.engine.context import StepContext
from wslstack.core.errors import CommandFailed, NonCriticalCommandError, PreconditionError
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.service import HealthCheck, OnTimeout, ServiceHandle, StartOutcome
from wslstack.core.persistence.state_file import StateStore
from wslstack.core.reliability.polling import retry
from wslstack.core.services.components import hive, kafka
from wslstack.core.services.components.hadoop import hadoop_env
from wslstack.core.services.host import port_open

logger = logging.getLogger(__name__)

# name → port, as reported by ``wslstack status``
STATUS_PORTS: dict[str, int] = {
    "NameNode": 9870,
    "DataNode": 9864,
    "ResourceManager": 8088,
    "NodeManager": 8042,
    "Kafka": kafka.BROKER_PORT,
    "HiveMetaStore": hive.METASTORE_PORT,
}

# HDFS path → mode
HDFS_DIRS: dict[str, str] = {
    "/user/{user}": "755",
    "/spark-logs": "777",
    hive.WAREHOUSE_DIR: "777",
    hive.SCRATCH_DIR: "777",
}


# ── Handles ─────────────────────────────────────────────────────


def ssh_handle(config: InstallerConfig) -> ServiceHandle:
    return ServiceHandle(
        name="ssh",
        start_command=["service", "ssh", "start"],
        sudo=True,
        detached=False,
        health_check=HealthCheck.status(
            ["ssh", "-o", "BatchMode=yes", "-o", "ConnectTimeout=5", "localhost", "exit"]
        ),
        max_attempts=10,
    )


def hdfs_handle(config: InstallerConfig) -> ServiceHandle:
    sbin = config.hadoop_home / "sbin"
    return ServiceHandle(
        name="hdfs",
        start_command=[str(sbin / "start-dfs.sh")],
        stop_command=[str(sbin / "stop-dfs.sh")],
        detached=False,
        env=hadoop_env(config),
        health_check=HealthCheck.tcp(STATUS_PORTS["NameNode"]),
        log_file=config.hadoop_home / "logs",
        max_attempts=60,
    )


def safemode_handle(config: InstallerConfig) -> ServiceHandle:
    hdfs = str(config.hdfs_bin)
    return ServiceHandle(
        name="hdfs-safemode",
        env=hadoop_env(config),
        health_check=HealthCheck.status([hdfs, "dfsadmin", "-safemode", "get"], expect="OFF"),
        max_attempts=120,
        on_timeout=OnTimeout.WARN_AND_FORCE,
        force_ready_command=[hdfs, "dfsadmin", "-safemode", "leave"],
    )


def yarn_handle(config: InstallerConfig) -> ServiceHandle:
    sbin = config.hadoop_home / "sbin"
    return ServiceHandle(
        name="yarn",
        start_command=[str(sbin / "start-yarn.sh")],
        stop_command=[str(sbin / "stop-yarn.sh")],
        detached=False,
        env=hadoop_env(config),
        health_check=HealthCheck.tcp(STATUS_PORTS["ResourceManager"]),
        log_file=config.hadoop_home / "logs",
        max_attempts=60,
    )


def metastore_handle(config: InstallerConfig) -> ServiceHandle:
    return ServiceHandle(
        name="hive-metastore",
        start_command=[str(config.hive_home / "bin" / "hive"), "--service", "metastore"],
        env={**hadoop_env(config), "HIVE_HOME": str(config.hive_home)},
        health_check=HealthCheck.tcp(hive.METASTORE_PORT),
        pid_file=config.hive_home / "metastore.pid",
        log_file=config.hive_home / "metastore.log",
        process_pattern="HiveMetaStore",
        max_attempts=60,
    )


def kafka_handle(config: InstallerConfig) -> ServiceHandle:
    return ServiceHandle(
        name="kafka",
        start_command=[str(kafka.wrapper_path(config)), str(kafka.properties_path(config))],
        env={"JAVA_HOME": str(config.java17_home)},
        health_check=HealthCheck.tcp(kafka.BROKER_PORT),
        pid_file=config.kafka_home / "kafka.pid",
        log_file=config.kafka_home / "kafka.log",
        process_pattern="kafka.Kafka",
        max_attempts=60,
    )


# ── Installed components ────────────────────────────────────────


def hive_installed(config: InstallerConfig, store: StateStore) -> bool:
    return store.contains("hive_config") and config.hive_home.is_dir()


def kafka_installed(config: InstallerConfig, store: StateStore) -> bool:
    return store.contains("kafka_install") and config.kafka_home.is_dir()


# ── HDFS housekeeping ───────────────────────────────────────────


def hdfs_mkdirs(
    runner: CommandRunner,
    config: InstallerConfig,
    dirs: dict[str, str] | None = None,
    *,
    attempts: int = 3,
    backoff: float = 2.0,
    sleep=None,
) -> list[str]:
    """Create HDFS directories with their modes, retrying each a few times.

    Only call once HDFS has left safe mode.  A directory that still
    fails is logged as a non-critical warning with the manual command.

    Returns:
        Paths that could not be created.
    """
    hdfs = str(config.hdfs_bin)
    env = hadoop_env(config)
    failed: list[str] = []
    retry_kwargs = {"attempts": attempts, "backoff": backoff, "retry_on": (CommandFailed,)}
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    for raw_path, mode in (dirs if dirs is not None else HDFS_DIRS).items():
        path = raw_path.format(user=config.user)

        def _create(path: str = path, mode: str = mode) -> None:
            runner.run([hdfs, "dfs", "-mkdir", "-p", path], env=env, timeout=120).check()
            runner.run([hdfs, "dfs", "-chmod", mode, path], env=env, timeout=120).check()

        try:
            retry(_create, **retry_kwargs)
        except CommandFailed as e:
            err = NonCriticalCommandError(
                f"Could not create HDFS directory {path}: {e.message}",
                remedy=f"{hdfs} dfs -mkdir -p {path} && {hdfs} dfs -chmod {mode} {path}",
            )
            logger.warning("%s — run manually: %s", err.message, err.remedy)
            failed.append(path)
        else:
            logger.info("HDFS directory ready: %s (%s)", path, mode)
    return failed


def init_hive_schema(runner: CommandRunner, config: InstallerConfig) -> None:
    schematool = str(config.hive_home / "bin" / "schematool")
    env = {**hadoop_env(config), "HIVE_HOME": str(config.hive_home)}
    info = runner.run([schematool, "-dbType", "mysql", "-info"], env=env, timeout=300)
    if info.ok and "schemaTool completed" in info.stdout:
        logger.info("Hive metastore schema already initialized")
        return
    best_effort(
        runner.run([schematool, "-dbType", "mysql", "-initSchema"], env=env, timeout=600),
        "Hive schema initialization",
    )


# ── Orchestration ───────────────────────────────────────────────


@dataclass
class StackReport:
    """Outcome per service for a start or stop pass."""

    outcomes: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"ok": True, "services": self.outcomes, "warnings": self.warnings}


def start_all(ctx: StepContext, store: StateStore) -> StackReport:
    """Start every installed daemon in dependency order.

    Raises:
        PreconditionError: Hadoop is not installed.
        ServiceStartError: A daemon without an escape hatch never became ready.
    """
    config = ctx.config
    supervisor = ctx.supervisor
    if not config.hadoop_home.is_dir():
        raise PreconditionError(
            "Hadoop not installed.",
            remedy="Install it first: wslstack install hadoop",
        )

    report = StackReport()
    with_hive = hive_installed(config, store)
    with_kafka = kafka_installed(config, store)

    report.outcomes["ssh"] = supervisor.start(ssh_handle(config)).value
    if with_hive:
        report.outcomes["mysql"] = supervisor.start(hive.mysql_handle(config)).value

    report.outcomes["hdfs"] = supervisor.start(hdfs_handle(config)).value
    safemode = supervisor.start(safemode_handle(config))
    report.outcomes["hdfs-safemode"] = safemode.value
    if safemode == StartOutcome.FORCED:
        report.warnings.append("HDFS safe mode timeout: forced exit")

    report.outcomes["yarn"] = supervisor.start(yarn_handle(config)).value

    for path in hdfs_mkdirs(ctx.runner, config, sleep=supervisor.sleep):
        report.warnings.append(f"HDFS directory not created: {path}")

    if with_hive:
        init_hive_schema(ctx.runner, config)
        report.outcomes["hive-metastore"] = supervisor.start(metastore_handle(config)).value
    if with_kafka:
        report.outcomes["kafka"] = supervisor.start(kafka_handle(config)).value

    logger.info("Services started: %s", report.outcomes)
    return report


def stop_all(ctx: StepContext, store: StateStore) -> StackReport:
    """Stop daemons in reverse start order. Missing processes are not errors."""
    config = ctx.config
    supervisor = ctx.supervisor
    report = StackReport()

    if kafka_installed(config, store):
        report.outcomes["kafka"] = _stopped(supervisor.stop(kafka_handle(config)))
    if hive_installed(config, store):
        report.outcomes["hive-metastore"] = _stopped(supervisor.stop(metastore_handle(config)))

    if config.hadoop_home.is_dir():
        report.outcomes["yarn"] = _stopped(supervisor.stop(yarn_handle(config)))
        report.outcomes["hdfs"] = _stopped(supervisor.stop(hdfs_handle(config)))
    else:
        report.warnings.append("Hadoop not installed, nothing to stop")

    logger.info("Services stopped: %s", report.outcomes)
    return report


def _stopped(acted: bool) -> str:
    return "stopped" if acted else "not_running"


def service_status(probe=port_open) -> list[dict]:
    """Single-shot port probe of every stack daemon."""
    return [
        {"name": name, "port": port, "up": bool(probe(port))}
        for name, port in STATUS_PORTS.items()
    ]
