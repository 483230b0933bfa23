"""
Step catalog — the canonical step order and per-component workflows.

Selecting components never reorders steps: the union of their
workflows is replayed in ``ALL_STEPS`` order, so ``hdfs_format`` always
follows ``hadoop_config`` and ``env_setup`` follows every install.
"""

from __future__ import annotations

from wslstack.core.models.step import InstallStep
from wslstack.core.services.components import (
    environment,
    hadoop,
    hive,
    kafka,
    pig,
    spark,
    system,
)

_BY_NAME: dict[str, InstallStep] = {
    step.name: step
    for module in (system, hadoop, spark, kafka, pig, hive, environment)
    for step in module.STEPS
}

STEP_ORDER: tuple[str, ...] = (
    "system_setup",
    "java_setup",
    "hadoop_install",
    "hadoop_config",
    "spark_install",
    "kafka_install",
    "pig_install",
    "hive_install",
    "hive_config",
    "env_setup",
    "hdfs_format",
)

ALL_STEPS: list[InstallStep] = [_BY_NAME[name] for name in STEP_ORDER]

_HADOOP = ("system_setup", "java_setup", "hadoop_install", "hadoop_config", "env_setup", "hdfs_format")

COMPONENT_WORKFLOWS: dict[str, tuple[str, ...]] = {
    "hadoop": _HADOOP,
    "spark": (*_HADOOP, "spark_install"),
    "kafka": ("system_setup", "java_setup", "kafka_install", "env_setup"),
    "pig": (*_HADOOP, "pig_install"),
    "hive": (*_HADOOP, "hive_install", "hive_config"),
}

# step whose completion means the component is usable
COMPONENT_MARKERS: dict[str, str] = {
    "hadoop": "hdfs_format",
    "spark": "spark_install",
    "kafka": "kafka_install",
    "pig": "pig_install",
    "hive": "hive_config",
}

COMPONENT_LABELS: dict[str, str] = {
    "hadoop": "Hadoop [HDFS & YARN]",
    "spark": "Spark",
    "kafka": "Kafka",
    "pig": "Pig",
    "hive": "Hive",
}


def get_step(name: str) -> InstallStep:
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown step: {name}") from None


def steps_for(components: list[str] | tuple[str, ...] | None = None) -> list[InstallStep]:
    """Steps needed for ``components`` (all of them when empty), in canonical order.

    Raises:
        KeyError: Unknown component name.
    """
    if not components:
        return list(ALL_STEPS)
    wanted: set[str] = set()
    for component in components:
        if component not in COMPONENT_WORKFLOWS:
            raise KeyError(
                f"Unknown component: {component} "
                f"(choose from {', '.join(COMPONENT_WORKFLOWS)})"
            )
        wanted.update(COMPONENT_WORKFLOWS[component])
    return [step for step in ALL_STEPS if step.name in wanted]


_COMMON = frozenset({"system_setup", "java_setup", "env_setup"})


def started_components(completed: list[str] | set[str]) -> list[str]:
    """Components with at least one of their own steps recorded.

    The host-wide steps (system, Java, environment) do not count; a
    partial Spark install also counts as a started Hadoop install.
    """
    done = set(completed)
    return [
        component
        for component, workflow in COMPONENT_WORKFLOWS.items()
        if any(name in done for name in workflow if name not in _COMMON)
    ]
