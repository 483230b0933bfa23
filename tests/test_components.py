"""
Tests for the component steps and the step catalog.
"""

import stat
from pathlib import Path

import pytest
from lxml import etree

from wslstack.adapters.shell.command import CommandResult
from wslstack.core.errors import CommandFailed, ConfigurationError, PreconditionError
from wslstack.core.services import catalog
from wslstack.core.services.components import environment, hadoop, hive, kafka, spark, system
from wslstack.core.services.config_render import compute_memory


def _xml_props(text: str) -> dict[str, str]:
    root = etree.fromstring(text.encode("utf-8"))
    return {p.findtext("name"): p.findtext("value") for p in root.iter("property")}


class TestCatalog:

    def test_full_order(self):
        assert [s.name for s in catalog.steps_for()] == list(catalog.STEP_ORDER)

    def test_component_keeps_canonical_order(self):
        names = [s.name for s in catalog.steps_for(["spark"])]
        assert names == [
            "system_setup", "java_setup", "hadoop_install", "hadoop_config",
            "spark_install", "env_setup", "hdfs_format",
        ]

    def test_union_of_components(self):
        names = [s.name for s in catalog.steps_for(["kafka", "pig"])]
        assert names.index("kafka_install") < names.index("pig_install") < names.index("env_setup")
        assert len(names) == len(set(names))

    def test_unknown_component(self):
        with pytest.raises(KeyError, match="flink"):
            catalog.steps_for(["flink"])

    def test_markers_are_steps(self):
        assert set(catalog.COMPONENT_MARKERS.values()) <= set(catalog.STEP_ORDER)


class TestHadoop:

    def test_files_use_memory_plan(self, config):
        files = hadoop.hadoop_files(config, compute_memory(8192))
        yarn = _xml_props(files["yarn-site.xml"])
        mapred = _xml_props(files["mapred-site.xml"])
        assert yarn["yarn.nodemanager.resource.memory-mb"] == "4096"
        assert yarn["yarn.scheduler.maximum-allocation-mb"] == "4096"
        assert yarn["yarn.scheduler.minimum-allocation-mb"] == "512"
        assert mapred["mapreduce.map.memory.mb"] == "2048"
        assert files["workers"] == "localhost\n"

    def test_absolute_paths(self, config):
        files = hadoop.hadoop_files(config, compute_memory(4096))
        core = _xml_props(files["core-site.xml"])
        hdfs = _xml_props(files["hdfs-site.xml"])
        assert core["fs.defaultFS"] == "hdfs://localhost:9000"
        assert core["hadoop.tmp.dir"] == str(config.hadoop_home / "tmp")
        assert hdfs["dfs.namenode.name.dir"] == f"file://{config.hadoop_home}/dfs/namenode"
        assert f"export JAVA_HOME={config.java_home}" in files["hadoop-env.sh"]

    def test_config_step_writes_files(self, step_ctx, monkeypatch):
        monkeypatch.setattr(hadoop, "read_total_ram_mb", lambda: 4096)
        step_ctx.config.hadoop_conf_dir.mkdir(parents=True)

        hadoop.hadoop_config(step_ctx)

        conf = step_ctx.config.hadoop_conf_dir
        assert sorted(p.name for p in conf.iterdir()) == [
            "core-site.xml", "hadoop-env.sh", "hdfs-site.xml",
            "mapred-site.xml", "workers", "yarn-site.xml",
        ]
        assert _xml_props((conf / "yarn-site.xml").read_text())[
            "yarn.nodemanager.resource.memory-mb"
        ] == "2867"
        assert (step_ctx.config.hadoop_home / "dfs" / "datanode").is_dir()

    def test_config_step_without_extraction(self, step_ctx, monkeypatch):
        monkeypatch.setattr(hadoop, "read_total_ram_mb", lambda: 8192)
        with pytest.raises(ConfigurationError):
            hadoop.hadoop_config(step_ctx)

    def test_config_step_unknown_memory(self, step_ctx, monkeypatch):
        monkeypatch.setattr(hadoop, "read_total_ram_mb", lambda: 0)
        with pytest.raises(ConfigurationError, match="memory"):
            hadoop.hadoop_config(step_ctx)

    def test_format_failure_is_fatal(self, step_ctx, runner):
        runner.responses["namenode -format"] = CommandResult(cmd=["hdfs"], returncode=1)
        with pytest.raises(CommandFailed):
            hadoop.hdfs_format(step_ctx)


class TestSpark:

    def test_defaults_rendered(self, config):
        files = spark.spark_files(config)
        assert "spark.eventLog.dir               hdfs://localhost:9000/spark-logs" in files["spark-defaults.conf"]
        assert "@@" not in files["spark-defaults.conf"]
        assert "SPARK_DIST_CLASSPATH" in files["spark-env.sh"]


class TestKafka:

    def _extracted(self, config) -> Path:
        home = config.install_dir / kafka.kafka_dirname(config)
        (home / "bin").mkdir(parents=True)
        (home / "config").mkdir()
        config.java17_home.mkdir(parents=True)
        return home

    def test_install_formats_once(self, step_ctx, runner):
        config = step_ctx.config
        self._extracted(config)
        runner.responses["random-uuid"] = CommandResult(
            cmd=[], returncode=0, stdout="WARN something\nMkU3OEVBNTcwNTJENDM2Qk\n"
        )

        kafka.kafka_install(step_ctx)

        assert (config.kafka_home / ".cluster-id").read_text() == "MkU3OEVBNTcwNTJENDM2Qk\n"
        props = kafka.properties_path(config).read_text()
        assert "listeners=PLAINTEXT\\://localhost\\:9092,CONTROLLER\\://localhost\\:9093" in props
        assert f"log.dirs={config.kafka_home / 'kraft-logs'}" in props
        wrapper = kafka.wrapper_path(config)
        assert stat.S_IMODE(wrapper.stat().st_mode) == 0o755
        assert f"export JAVA_HOME={config.java17_home}" in wrapper.read_text()
        formats = [line for line in runner.lines() if " format " in line]
        assert len(formats) == 1
        assert "-t MkU3OEVBNTcwNTJENDM2Qk" in formats[0]

    def test_rerun_keeps_cluster_id_and_storage(self, step_ctx, runner):
        config = step_ctx.config
        home = self._extracted(config)
        (home / ".cluster-id").write_text("existing-id\n")
        (home / "kraft-logs").mkdir()
        (home / "kraft-logs" / "meta.properties").write_text("cluster.id=existing-id\n")

        kafka.kafka_install(step_ctx)

        assert not any("random-uuid" in line or " format " in line for line in runner.lines())

    def test_requires_java17(self, step_ctx):
        with pytest.raises(PreconditionError, match="Java 17"):
            kafka.kafka_install(step_ctx)


class TestHive:

    def test_metastore_sql_escapes_values(self, config):
        config = config.model_copy(
            update={"hive_db": config.hive_db.model_copy(update={"password": "p'w\\d"})}
        )
        sql = hive.metastore_sql(config)
        assert "IDENTIFIED BY 'p\\'w\\\\d'" in sql
        assert "CREATE DATABASE IF NOT EXISTS `metastore`;" in sql

    def test_site_xml_escapes_jdbc_url(self, config):
        site = hive.hive_files(config)["hive-site.xml"]
        assert "createDatabaseIfNotExist=true&amp;useSSL=false" in site
        props = _xml_props(site)
        assert props["hive.metastore.uris"] == "thrift://localhost:9083"
        assert props["javax.jdo.option.ConnectionURL"].endswith("&useSSL=false")

    def test_config_step(self, step_ctx, runner):
        config = step_ctx.config
        (config.hive_home / "lib").mkdir(parents=True)
        (config.hive_home / "lib" / hive.connector_jar_name(config)).write_bytes(b"jar")
        (config.hive_home / "lib" / "guava-19.0.jar").write_bytes(b"old")
        hadoop_lib = config.hadoop_home / "share" / "hadoop" / "common" / "lib"
        hadoop_lib.mkdir(parents=True)
        (hadoop_lib / "guava-27.0-jre.jar").write_bytes(b"new")

        hive.hive_config(step_ctx)

        lib = sorted(p.name for p in (config.hive_home / "lib").iterdir())
        assert "guava-19.0.jar" not in lib
        assert "guava-27.0-jre.jar" in lib
        site = config.hive_home / "conf" / "hive-site.xml"
        assert stat.S_IMODE(site.stat().st_mode) == 0o600
        mysql_calls = [c for c in runner.calls if c["cmd"][:3] == ["mysql", "-u", "root"]]
        assert len(mysql_calls) == 1
        assert mysql_calls[0]["sudo"] is True
        assert "CREATE USER IF NOT EXISTS" in mysql_calls[0]["input"]


class TestEnvironment:

    def test_setup_is_repeatable(self, step_ctx):
        config = step_ctx.config
        config.bashrc.write_text("# existing\n")

        environment.env_setup(step_ctx)
        environment.env_setup(step_ctx)

        rc = config.bashrc.read_text()
        assert rc.count(environment.BASHRC_MARKER) == 1
        assert rc.startswith("# existing\n")
        exports = config.env_file.read_text()
        assert f"export HADOOP_HOME={config.hadoop_home}" in exports
        assert "kafka-server-start()" in exports
        assert exports.count("export PATH=") == 1


class TestSystem:

    def test_ssh_setup_with_existing_key(self, step_ctx, runner):
        ssh = step_ctx.config.ssh_dir
        ssh.mkdir()
        (ssh / "id_rsa").write_text("PRIVATE")
        (ssh / "id_rsa.pub").write_text("ssh-rsa AAAA tester@host\n")

        system.setup_ssh(step_ctx)
        system.setup_ssh(step_ctx)

        assert runner.calls == []
        assert (ssh / "authorized_keys").read_text() == "ssh-rsa AAAA tester@host\n"
        assert (ssh / "config").read_text().count(system.SSH_CONFIG_MARKER) == 1
        assert stat.S_IMODE((ssh / "id_rsa").stat().st_mode) == 0o600
        assert stat.S_IMODE(ssh.stat().st_mode) == 0o700

    def test_ipv6_lines_appended_once(self, step_ctx, runner, tmp_path: Path):
        sysctl = tmp_path / "sysctl.conf"
        sysctl.write_text("net.ipv6.conf.all.disable_ipv6=1\n")
        system.disable_ipv6(step_ctx, sysctl)
        assert runner.calls == []

        sysctl.write_text("")
        system.disable_ipv6(step_ctx, sysctl)
        tee = runner.calls[0]
        assert tee["cmd"] == ["tee", "-a", str(sysctl)]
        assert tee["input"] == system.IPV6_LINES

    def test_java_setup(self, step_ctx):
        step_ctx.config.java_home.mkdir(parents=True)
        with pytest.raises(PreconditionError) as exc:
            system.java_setup(step_ctx)
        assert exc.value.remedy == "sudo apt-get install -y openjdk-17-jdk"
