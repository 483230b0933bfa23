"""
Hive with a MySQL-backed metastore.

``hive_install`` fetches the archive; ``hive_config`` makes sure MySQL
answers, creates the metastore database and user, adds the JDBC
connector, swaps Hive's bundled Guava for Hadoop's and renders the
configuration.  Schema initialization happens at service start, once
HDFS is up.
"""

from __future__ import annotations

import logging
import shutil

from wslstack.adapters.shell.command import best_effort
from wslstack.core.engine.context import StepContext
from wslstack.core.models.config import InstallerConfig
from wslstack.core.models.service import HealthCheck, ServiceHandle
from wslstack.core.models.step import InstallStep
from wslstack.core.services.archive import install_archive
from wslstack.core.services.components.hadoop import FS_DEFAULT
from wslstack.core.services.config_render import (
    render_env_exports,
    render_hadoop_xml,
    write_config,
)
from wslstack.core.services.download import apache_target, maven_target

logger = logging.getLogger(__name__)

METASTORE_PORT = 9083
HIVESERVER2_PORT = 10000
WAREHOUSE_DIR = "/user/hive/warehouse"
SCRATCH_DIR = "/tmp/hive"


def _sql_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _sql_ident(value: str) -> str:
    return "`" + value.replace("`", "``") + "`"


def metastore_sql(config: InstallerConfig) -> str:
    """Idempotent DDL for the metastore database and its user."""
    db = config.hive_db
    user = f"{_sql_string(db.user)}@{_sql_string(db.host)}"
    return (
        f"CREATE DATABASE IF NOT EXISTS {_sql_ident(db.name)};\n"
        f"CREATE USER IF NOT EXISTS {user} IDENTIFIED BY {_sql_string(db.password)};\n"
        f"GRANT ALL PRIVILEGES ON {_sql_ident(db.name)}.* TO {user};\n"
        "FLUSH PRIVILEGES;\n"
    )


def mysql_handle(config: InstallerConfig) -> ServiceHandle:
    """MySQL server, considered ready once ``SELECT 1`` succeeds as root."""
    return ServiceHandle(
        name="mysql",
        start_command=["service", "mysql", "start"],
        sudo=True,
        detached=False,
        health_check=HealthCheck.status(["sudo", "mysql", "-u", "root", "-e", "SELECT 1"]),
        max_attempts=30,
        interval=1.0,
    )


def connector_jar_name(config: InstallerConfig) -> str:
    return f"mysql-connector-java-{config.versions.mysql_connector}.jar"


def hive_files(config: InstallerConfig) -> dict[str, str]:
    db = config.hive_db
    jdbc = (
        f"jdbc:mysql://{db.host}:{db.port}/{db.name}"
        "?createDatabaseIfNotExist=true&useSSL=false"
    )
    site = render_hadoop_xml({
        "javax.jdo.option.ConnectionURL": jdbc,
        "javax.jdo.option.ConnectionDriverName": "com.mysql.cj.jdbc.Driver",
        "javax.jdo.option.ConnectionUserName": db.user,
        "javax.jdo.option.ConnectionPassword": db.password,
        "hive.metastore.warehouse.dir": WAREHOUSE_DIR,
        "hive.metastore.uris": f"thrift://localhost:{METASTORE_PORT}",
        "hive.server2.thrift.port": HIVESERVER2_PORT,
        "hive.server2.thrift.bind.host": "localhost",
        "hive.server2.enable.doAs": "false",
        "hive.metastore.schema.verification": "false",
        "datanucleus.schema.autoCreateAll": "true",
        "hive.exec.scratchdir": SCRATCH_DIR,
        "fs.defaultFS": FS_DEFAULT,
    })
    env = render_env_exports(
        {
            "HADOOP_HOME": config.hadoop_home,
            "HIVE_CONF_DIR": config.hive_home / "conf",
            "HIVE_AUX_JARS_PATH": config.hive_home / "lib",
        },
        header="Generated by wslstack",
    )
    return {"hive-site.xml": site, "hive-env.sh": env}


# ── Steps ───────────────────────────────────────────────────────


def hive_install(ctx: StepContext) -> None:
    config = ctx.config
    version = config.versions.hive
    dirname = f"apache-hive-{version}-bin"
    install_archive(
        apache_target(config, f"hive/hive-{version}", f"{dirname}.tar.gz"),
        config.install_dir,
        dirname,
        "hive",
        ctx.downloader,
    )


def ensure_mysql(ctx: StepContext) -> None:
    runner = ctx.runner
    best_effort(runner.run(["mkdir", "-p", "/var/run/mysqld"], sudo=True), "Creating /var/run/mysqld")
    best_effort(
        runner.run(["chown", "mysql:mysql", "/var/run/mysqld"], sudo=True),
        "Setting /var/run/mysqld owner",
    )
    ctx.supervisor.start(mysql_handle(ctx.config))


def create_metastore_db(ctx: StepContext) -> None:
    ctx.runner.run(
        ["mysql", "-u", "root"],
        sudo=True,
        input=metastore_sql(ctx.config),
        timeout=120,
    ).check(remedy="Check MySQL: sudo service mysql status")
    logger.info("Metastore database ready: %s", ctx.config.hive_db.name)


def fetch_connector(ctx: StepContext) -> None:
    config = ctx.config
    jar = config.hive_home / "lib" / connector_jar_name(config)
    if jar.is_file():
        logger.info("MySQL connector present: %s", jar)
        return
    ctx.downloader.download(
        maven_target(config, "mysql", "mysql-connector-java", config.versions.mysql_connector, jar)
    )


def swap_guava(ctx: StepContext) -> None:
    """Hive 3 ships Guava 19, which clashes with Hadoop 3's newer Guava."""
    config = ctx.config
    hadoop_lib = config.hadoop_home / "share" / "hadoop" / "common" / "lib"
    hive_lib = config.hive_home / "lib"
    replacements = sorted(hadoop_lib.glob("guava-*.jar"))
    if not replacements:
        logger.warning("No Guava jar found in %s, leaving Hive's own", hadoop_lib)
        ctx.warn("hive_config", "Guava swap skipped: Hadoop Guava jar not found")
        return
    for old in hive_lib.glob("guava-*.jar"):
        old.unlink()
    for jar in replacements:
        shutil.copy2(jar, hive_lib / jar.name)
    logger.info("Guava replaced with %s", ", ".join(j.name for j in replacements))


def hive_config(ctx: StepContext) -> None:
    config = ctx.config
    ensure_mysql(ctx)
    create_metastore_db(ctx)
    fetch_connector(ctx)
    swap_guava(ctx)

    conf = config.hive_home / "conf"
    conf.mkdir(parents=True, exist_ok=True)
    files = hive_files(config)
    write_config(conf / "hive-site.xml", files["hive-site.xml"], mode=0o600)
    write_config(conf / "hive-env.sh", files["hive-env.sh"], mode=0o755)


STEPS = [
    InstallStep("hive_install", hive_install, "Hive download and extraction"),
    InstallStep("hive_config", hive_config, "Hive metastore and configuration"),
]
