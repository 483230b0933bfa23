"""
Health checker — aggregate installation health from components.

Reports whether each installed daemon answers on its port and whether
every step of the installed components is recorded.  Used by
``wslstack verify`` and as the final pass of ``wslstack install``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from wslstack.core.models.config import InstallerConfig
from wslstack.core.persistence.state_file import StateStore
from wslstack.core.services.catalog import (
    COMPONENT_MARKERS,
    STEP_ORDER,
    started_components,
    steps_for,
)
from wslstack.core.services.host import port_open
from wslstack.core.services.stack import STATUS_PORTS

logger = logging.getLogger(__name__)

# status-port name → owning component
_PORT_OWNERS: dict[str, str] = {
    "NameNode": "hadoop",
    "DataNode": "hadoop",
    "ResourceManager": "hadoop",
    "NodeManager": "hadoop",
    "Kafka": "kafka",
    "HiveMetaStore": "hive",
}


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = "unknown"  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregate health of the installation."""

    status: str = "healthy"
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        self._recalculate()

    def _recalculate(self) -> None:
        """Recalculate overall status from components."""
        statuses = [c.status for c in self.components]
        if any(s == "unhealthy" for s in statuses):
            self.status = "unhealthy"
        elif any(s == "degraded" for s in statuses):
            self.status = "degraded"
        elif all(s == "healthy" for s in statuses):
            self.status = "healthy"
        else:
            self.status = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


def check_install_state(store: StateStore) -> ComponentHealth:
    """Completed vs pending steps of the components actually installed.

    Components never selected are listed in ``details`` only; a
    complete single-component install is healthy.
    """
    done = set(store.completed())
    started = started_components(done)
    expected = [s.name for s in steps_for(started)] if started else list(STEP_ORDER)
    completed = [name for name in STEP_ORDER if name in done]
    pending = [name for name in expected if name not in done]

    if not completed:
        status, message = "unhealthy", "Nothing installed yet"
    elif not started:
        status, message = "degraded", "Host prepared, no component installed"
    elif pending:
        status, message = "degraded", f"{len(expected) - len(pending)}/{len(expected)} steps done"
    else:
        status, message = "healthy", f"{', '.join(started)}: all {len(expected)} steps done"

    return ComponentHealth(
        name="install_state",
        status=status,
        message=message,
        details={
            "components": started,
            "completed": completed,
            "pending": pending,
            "not_selected": [c for c in COMPONENT_MARKERS if c not in started],
        },
    )


def check_service(name: str, port: int, probe: Callable[[int], bool]) -> ComponentHealth:
    """One daemon, by TCP port."""
    up = probe(port)
    return ComponentHealth(
        name=name,
        status="healthy" if up else "unhealthy",
        message=f"port {port} {'open' if up else 'closed'}",
        details={"port": port},
    )


def verify_installation(
    config: InstallerConfig,
    store: StateStore | None = None,
    probe: Callable[[int], bool] = port_open,
) -> SystemHealth:
    """Probe the daemons of every installed component and the step record."""
    store = store or StateStore(config.state_file)
    health = SystemHealth()
    health.add(check_install_state(store))

    for name, port in STATUS_PORTS.items():
        owner = _PORT_OWNERS[name]
        if not store.contains(COMPONENT_MARKERS[owner]):
            logger.debug("Skipping %s: %s not installed", name, owner)
            continue
        health.add(check_service(name, port, probe))

    logger.info("Verification: %s", health.status)
    return health
