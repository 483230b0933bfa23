"""
Spark on YARN (client mode), event logs in HDFS.
"""

from __future__ import annotations

import shlex

from wslstack.core.engine.context import StepContext
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.step import InstallStep
from wslstack.core.services.archive import install_archive
from wslstack.core.services.components.hadoop import FS_DEFAULT
from wslstack.core.services.config_render import render_env_exports, render_template, write_config
from wslstack.core.services.download import apache_target

EVENT_LOG_DIR = f"{FS_DEFAULT}/spark-logs"

SPARK_DEFAULTS = """\
spark.master                     yarn
spark.submit.deployMode          client
spark.eventLog.enabled           true
spark.eventLog.dir               @@EVENT_LOG_DIR@@
spark.history.fs.logDirectory    @@EVENT_LOG_DIR@@
spark.yarn.am.memory             @@AM_MEMORY@@
"""


def spark_dirname(config: InstallerConfig) -> str:
    v = config.versions
    return f"spark-{v.spark}-bin-{v.spark_hadoop_profile}"


def spark_files(config: InstallerConfig) -> dict[str, str]:
    hadoop_bin = config.hadoop_home / "bin" / "hadoop"
    env = render_env_exports(
        {
            "JAVA_HOME": config.java_home,
            "HADOOP_CONF_DIR": config.hadoop_conf_dir,
            "YARN_CONF_DIR": config.hadoop_conf_dir,
            "SPARK_MASTER": "yarn",
        },
        header="Generated by wslstack",
    )
    env += f'export SPARK_DIST_CLASSPATH="$({shlex.quote(str(hadoop_bin))} classpath)"\n'

    defaults = render_template(
        SPARK_DEFAULTS,
        {"EVENT_LOG_DIR": EVENT_LOG_DIR, "AM_MEMORY": "512m"},
    )
    return {"spark-env.sh": env, "spark-defaults.conf": defaults}


def spark_install(ctx: StepContext) -> None:
    config = ctx.config
    dirname = spark_dirname(config)
    install_archive(
        apache_target(config, f"spark/spark-{config.versions.spark}", f"{dirname}.tgz"),
        config.install_dir,
        dirname,
        "spark",
        ctx.downloader,
    )
    conf = config.spark_home / "conf"
    files = spark_files(config)
    write_config(conf / "spark-env.sh", files["spark-env.sh"], mode=0o755)
    write_config(conf / "spark-defaults.conf", files["spark-defaults.conf"])


STEPS = [InstallStep("spark_install", spark_install, "Spark")]
