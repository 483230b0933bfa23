"""
Hadoop — single-node HDFS + YARN.

Steps: ``hadoop_install`` (archive), ``hadoop_config`` (memory plan and
the ``etc/hadoop`` file set), ``hdfs_format`` (namenode format).
"""

from __future__ import annotations

import logging

from wslstack.core.engine.context import StepContext
from wslstack.core.errors import ConfigurationError
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import InstallStep
from wslstack.core.services.archive import install_archive
from wslstack.core.services.components.system import require_java
from wslstack.core.services.config_render import (
    MemoryPlan,
    compute_memory,
    render_env_exports,
    render_hadoop_xml,
    write_config,
)
from wslstack.core.services.download import apache_target
from wslstack.core.services.host import read_total_ram_mb

logger = logging.getLogger(__name__)

FS_DEFAULT = "hdfs://localhost:9000"
MIN_ALLOCATION_MB = 512


def hadoop_env(config: InstallerConfig) -> dict[str, str]:
    """Environment every Hadoop CLI invocation needs."""
    return {
        "JAVA_HOME": str(config.java_home),
        "HADOOP_HOME": str(config.hadoop_home),
        "HADOOP_CONF_DIR": str(config.hadoop_conf_dir),
    }


# ── Rendered files ──────────────────────────────────────────────


def hadoop_files(config: InstallerConfig, memory: MemoryPlan) -> dict[str, str]:
    """File name (relative to ``etc/hadoop``) → content."""
    home = config.hadoop_home
    user = config.user
    dfs = home / "dfs"

    env = render_env_exports(
        {
            "JAVA_HOME": config.java_home,
            "HADOOP_HOME": home,
            "HADOOP_CONF_DIR": config.hadoop_conf_dir,
            "HADOOP_LOG_DIR": home / "logs",
            "HDFS_NAMENODE_USER": user,
            "HDFS_DATANODE_USER": user,
            "HDFS_SECONDARYNAMENODE_USER": user,
            "YARN_RESOURCEMANAGER_USER": user,
            "YARN_NODEMANAGER_USER": user,
        },
        header="Generated by wslstack",
    )

    core = render_hadoop_xml({
        "fs.defaultFS": FS_DEFAULT,
        "hadoop.tmp.dir": home / "tmp",
    })

    hdfs = render_hadoop_xml({
        "dfs.replication": 1,
        "dfs.namenode.name.dir": f"file://{dfs / 'namenode'}",
        "dfs.datanode.data.dir": f"file://{dfs / 'datanode'}",
        "dfs.namenode.http-address": "localhost:9870",
        "dfs.permissions.enabled": "false",
    })

    mapred_home = f"HADOOP_MAPRED_HOME={home}"
    mapred = render_hadoop_xml({
        "mapreduce.framework.name": "yarn",
        "yarn.app.mapreduce.am.env": mapred_home,
        "mapreduce.map.env": mapred_home,
        "mapreduce.reduce.env": mapred_home,
        "mapreduce.application.classpath": (
            f"{home}/share/hadoop/mapreduce/*:{home}/share/hadoop/mapreduce/lib/*"
        ),
        "mapreduce.map.memory.mb": memory.container_mb,
        "mapreduce.reduce.memory.mb": memory.container_mb,
    })

    yarn = render_hadoop_xml({
        "yarn.nodemanager.aux-services": "mapreduce_shuffle",
        "yarn.resourcemanager.hostname": "localhost",
        "yarn.nodemanager.resource.memory-mb": memory.yarn_mb,
        "yarn.scheduler.maximum-allocation-mb": memory.yarn_mb,
        "yarn.scheduler.minimum-allocation-mb": MIN_ALLOCATION_MB,
        "yarn.nodemanager.vmem-check-enabled": "false",
    })

    return {
        "hadoop-env.sh": env,
        "core-site.xml": core,
        "hdfs-site.xml": hdfs,
        "mapred-site.xml": mapred,
        "yarn-site.xml": yarn,
        "workers": "localhost\n",
    }


# ── Steps ───────────────────────────────────────────────────────


def hadoop_install(ctx: StepContext) -> None:
    config = ctx.config
    require_java(config.java_home, 11)
    version = config.versions.hadoop
    install_archive(
        apache_target(config, f"hadoop/common/hadoop-{version}", f"hadoop-{version}.tar.gz"),
        config.install_dir,
        f"hadoop-{version}",
        "hadoop",
        ctx.downloader,
    )


def hadoop_config(ctx: StepContext) -> None:
    config = ctx.config
    total_mb = read_total_ram_mb()
    if total_mb <= 0:
        raise ConfigurationError(
            "Cannot determine total memory from /proc/meminfo",
            remedy="Check that /proc is mounted, then re-run the installer.",
        )
    memory = compute_memory(total_mb)
    logger.info(
        "YARN memory: %d MB of %d MB total, containers %d MB",
        memory.yarn_mb, memory.total_mb, memory.container_mb,
    )
    ctx.info("hadoop_config", f"YARN memory {memory.yarn_mb} MB, containers {memory.container_mb} MB")

    home = config.hadoop_home
    for sub in ("dfs/namenode", "dfs/datanode", "tmp", "logs"):
        (home / sub).mkdir(parents=True, exist_ok=True)

    for name, content in hadoop_files(config, memory).items():
        write_config(config.hadoop_conf_dir / name, content)


def hdfs_format(ctx: StepContext) -> None:
    config = ctx.config
    ctx.runner.run(
        [str(config.hdfs_bin), "namenode", "-format", "-force", "-nonInteractive"],
        env=hadoop_env(config),
        timeout=600,
    ).check(remedy=f"Inspect the Hadoop logs in {config.hadoop_home / 'logs'}")


STEPS = [
    InstallStep("hadoop_install", hadoop_install, "Hadoop download and extraction"),
    InstallStep("hadoop_config", hadoop_config, "Hadoop configuration"),
    InstallStep("hdfs_format", hdfs_format, "HDFS namenode format"),
]
