"""
Configuration loader — builds the immutable ``InstallerConfig``.

Precedence, lowest to highest:
    model defaults  <  wslstack.yml  <  environment variables

The YAML file is optional.  It is searched upward from the working
directory unless an explicit path is passed with ``--config``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from wslstack.core.errors import ConfigurationError
from wslstack.core.models.config import InstallerConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "wslstack.yml"

# env var → dotted key inside the config mapping
ENV_OVERRIDES: dict[str, str] = {
    "INSTALL_DIR": "install_dir",
    "HADOOP_VERSION": "versions.hadoop",
    "SPARK_VERSION": "versions.spark",
    "KAFKA_VERSION": "versions.kafka",
    "PIG_VERSION": "versions.pig",
    "HIVE_VERSION": "versions.hive",
}


class ConfigError(ConfigurationError):
    """Raised when installer configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for wslstack.yml starting from the given directory, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _set_dotted(data: dict[str, Any], dotted: str, value: str) -> None:
    node = data
    *parents, leaf = dotted.split(".")
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[leaf] = value


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with recognised environment variables applied."""
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in data.items()}
    for var, dotted in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            logger.debug("Config override from $%s → %s=%s", var, dotted, value)
            _set_dotted(merged, dotted, value)
    return merged


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    search: bool = True,
) -> InstallerConfig:
    """Load and validate installer configuration.

    Args:
        path: Explicit path to a YAML file. Must exist when given.
        environ: Environment mapping (default: ``os.environ``).
        search: Look for wslstack.yml upward from cwd when ``path`` is None.

    Raises:
        ConfigError: If the file is unreadable or values fail validation.
    """
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        data = _read_yaml(path)
        logger.debug("Loaded installer config from %s", path)
    elif search:
        found = find_config_file()
        if found is not None:
            data = _read_yaml(found)
            logger.debug("Loaded installer config from %s", found)

    data = apply_env_overrides(data, environ)

    try:
        config = InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.info(
        "Config: install_dir=%s hadoop=%s spark=%s kafka=%s",
        config.install_dir,
        config.versions.hadoop,
        config.versions.spark,
        config.versions.kafka,
    )
    return config
