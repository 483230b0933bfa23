"""
Kafka in KRaft mode (combined broker + controller), run on Java 17.

The cluster id is generated once and kept in ``.cluster-id`` so a
re-run never reformats storage with a different id; storage is only
formatted when ``meta.properties`` is absent.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from wslstack.core.engine.context import StepContext
from wslstack.core.errors import ConfigurationError
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import InstallStep
from wslstack.core.services.archive import install_archive
from wslstack.core.services.components.system import require_java
from wslstack.core.services.config_render import (
    render_properties,
    render_template,
    write_config,
)
from wslstack.core.services.download import apache_target

logger = logging.getLogger(__name__)

BROKER_PORT = 9092
CONTROLLER_PORT = 9093
WRAPPER_NAME = "kafka-server-start-java17.sh"

JAVA17_WRAPPER = """\
#!/bin/bash
# Kafka startup wrapper: forces Java 17
export JAVA_HOME=@@JAVA17_HOME@@
export PATH="$JAVA_HOME/bin:$PATH"
exec "$(dirname "$0")/kafka-server-start.sh" "$@"
"""


def kafka_dirname(config: InstallerConfig) -> str:
    v = config.versions
    return f"kafka_{v.kafka_scala}-{v.kafka}"


def kraft_properties(config: InstallerConfig) -> dict[str, object]:
    return {
        "process.roles": "broker,controller",
        "node.id": 1,
        "controller.quorum.voters": f"1@localhost:{CONTROLLER_PORT}",
        "listeners": f"PLAINTEXT://localhost:{BROKER_PORT},CONTROLLER://localhost:{CONTROLLER_PORT}",
        "advertised.listeners": f"PLAINTEXT://localhost:{BROKER_PORT}",
        "controller.listener.names": "CONTROLLER",
        "listener.security.protocol.map": "CONTROLLER:PLAINTEXT,PLAINTEXT:PLAINTEXT",
        "num.network.threads": 3,
        "num.io.threads": 8,
        "socket.send.buffer.bytes": 102400,
        "socket.receive.buffer.bytes": 102400,
        "socket.request.max.bytes": 104857600,
        "log.dirs": config.kafka_home / "kraft-logs",
        "num.partitions": 1,
        "num.recovery.threads.per.data.dir": 1,
        "offsets.topic.replication.factor": 1,
        "transaction.state.log.replication.factor": 1,
        "transaction.state.log.min.isr": 1,
        "log.retention.hours": 168,
        "log.segment.bytes": 1073741824,
        "log.retention.check.interval.ms": 300000,
    }


def properties_path(config: InstallerConfig) -> Path:
    return config.kafka_home / "config" / "kraft-server.properties"


def wrapper_path(config: InstallerConfig) -> Path:
    return config.kafka_home / "bin" / WRAPPER_NAME


def cluster_id(ctx: StepContext) -> str:
    """Read the persisted cluster id, generating it on first use."""
    config = ctx.config
    id_file = config.kafka_home / ".cluster-id"
    if id_file.is_file():
        existing = id_file.read_text(encoding="utf-8").strip()
        if existing:
            logger.info("Using existing Kafka cluster id: %s", existing)
            return existing

    result = ctx.runner.run(
        [str(config.kafka_home / "bin" / "kafka-storage.sh"), "random-uuid"],
        env={"JAVA_HOME": str(config.java17_home)},
        timeout=120,
    ).check()
    lines = result.stdout.strip().splitlines()
    new_id = lines[-1].strip() if lines else ""
    if not new_id:
        raise ConfigurationError("Failed to generate Kafka cluster id")
    id_file.write_text(new_id + "\n", encoding="utf-8")
    logger.info("Generated Kafka cluster id: %s", new_id)
    return new_id


def kafka_install(ctx: StepContext) -> None:
    config = ctx.config
    require_java(config.java17_home, 17)
    version = config.versions.kafka
    dirname = kafka_dirname(config)
    install_archive(
        apache_target(config, f"kafka/{version}", f"{dirname}.tgz"),
        config.install_dir,
        dirname,
        "kafka",
        ctx.downloader,
    )

    log_dir = config.kafka_home / "kraft-logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    cid = cluster_id(ctx)

    props = properties_path(config)
    write_config(
        props,
        render_properties(kraft_properties(config), header="KRaft single-node; generated by wslstack"),
    )
    write_config(
        wrapper_path(config),
        render_template(JAVA17_WRAPPER, {"JAVA17_HOME": shlex.quote(str(config.java17_home))}),
        mode=0o755,
    )

    if (log_dir / "meta.properties").exists():
        logger.info("Kafka storage already formatted, skipping")
        return
    ctx.info("kafka_install", "Formatting Kafka storage")
    ctx.runner.run(
        [str(config.kafka_home / "bin" / "kafka-storage.sh"), "format", "-t", cid, "-c", str(props)],
        env={"JAVA_HOME": str(config.java17_home)},
        timeout=300,
    ).check(remedy=f"Inspect {props}, then re-run the installer.")


STEPS = [InstallStep("kafka_install", kafka_install, "Kafka (KRaft)")]
