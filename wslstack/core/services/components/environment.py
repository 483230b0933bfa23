"""
Shell environment — one exports file, sourced from ``~/.bashrc``.

The exports live in their own file (``~/.bigdata_env``) so re-running
rewrites them cleanly; ``.bashrc`` only gets a single guarded line,
appended once.
"""

from __future__ import annotations

import shlex

from wslstack.core.engine.context import StepContext
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import InstallStep
from wslstack.core.services.config_render import append_once, render_env_exports, write_config

BASHRC_MARKER = "# wslstack: big data environment"


def env_exports(config: InstallerConfig) -> str:
    homes = {
        "JAVA_HOME": config.java_home,
        "HADOOP_HOME": config.hadoop_home,
        "HADOOP_CONF_DIR": config.hadoop_conf_dir,
        "SPARK_HOME": config.spark_home,
        "KAFKA_HOME": config.kafka_home,
        "PIG_HOME": config.pig_home,
        "HIVE_HOME": config.hive_home,
    }
    path_entries = [
        config.hadoop_home / "bin",
        config.hadoop_home / "sbin",
        config.spark_home / "bin",
        config.kafka_home / "bin",
        config.pig_home / "bin",
        config.hive_home / "bin",
    ]
    text = render_env_exports(homes, header="Hadoop ecosystem; generated by wslstack", path_entries=path_entries)

    java17 = shlex.quote(str(config.java17_home))
    text += (
        "\n# Kafka tools run on Java 17\n"
        f'kafka-server-start() {{ JAVA_HOME={java17} kafka-server-start.sh "$@"; }}\n'
        f'kafka-topics() {{ JAVA_HOME={java17} kafka-topics.sh "$@"; }}\n'
    )
    return text


def source_line(config: InstallerConfig) -> str:
    env_file = shlex.quote(str(config.env_file))
    return f"[ -f {env_file} ] && . {env_file}\n"


def env_setup(ctx: StepContext) -> None:
    config = ctx.config
    write_config(config.env_file, env_exports(config))
    if append_once(config.bashrc, BASHRC_MARKER, source_line(config)):
        ctx.info("env_setup", f"Run: source {config.bashrc}")


STEPS = [InstallStep("env_setup", env_setup, "Shell environment")]
