"""
Tests for installer configuration loading.
"""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from wslstack.core.config.loader import ConfigError, find_config_file, load_config
from wslstack.core.errors import ConfigurationError


class TestLoadConfig:

    def test_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={}, search=False)
        assert config.install_dir == tmp_path / "bigdata"
        assert config.versions.hadoop == "3.4.2"
        assert config.download.max_retries_per_mirror == 2
        assert config.hadoop_home == tmp_path / "bigdata" / "hadoop"

    def test_yaml_overrides_defaults(self, tmp_path: Path):
        path = tmp_path / "wslstack.yml"
        path.write_text(textwrap.dedent("""\
            install_dir: /opt/bigdata
            versions:
              spark: 3.5.1
            preflight:
              min_memory_gb: 4
        """))
        config = load_config(path, environ={})
        assert config.install_dir == Path("/opt/bigdata")
        assert config.versions.spark == "3.5.1"
        assert config.versions.hadoop == "3.4.2"
        assert config.preflight.min_memory_gb == 4

    def test_environment_beats_yaml(self, tmp_path: Path):
        path = tmp_path / "wslstack.yml"
        path.write_text("install_dir: /opt/bigdata\nversions:\n  hadoop: 3.3.6\n")
        config = load_config(
            path,
            environ={"INSTALL_DIR": "/srv/stack", "HADOOP_VERSION": "3.4.0", "KAFKA_VERSION": ""},
        )
        assert config.install_dir == Path("/srv/stack")
        assert config.versions.hadoop == "3.4.0"
        assert config.versions.kafka == "4.1.1"

    def test_search_upward(self, tmp_path: Path, monkeypatch):
        (tmp_path / "wslstack.yml").write_text("lock_stale_seconds: 60\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert find_config_file() == tmp_path / "wslstack.yml"
        assert load_config(environ={}).lock_stale_seconds == 60

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "wslstack.yml"
        path.write_text("versions: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, environ={})

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "wslstack.yml"
        path.write_text("download:\n  max_retries_per_mirror: 0\n")
        with pytest.raises(ConfigurationError):
            load_config(path, environ={})

    def test_empty_mirror_list_rejected(self, tmp_path: Path):
        path = tmp_path / "wslstack.yml"
        path.write_text("apache_mirrors: []\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml", environ={})

    def test_config_is_frozen(self, config):
        with pytest.raises(ValidationError):
            config.install_dir = Path("/elsewhere")
