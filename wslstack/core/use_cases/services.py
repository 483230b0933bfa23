"""
Service use cases — start, stop and probe the installed stack.
"""

from __future__ import annotations

from wslstack.core.engine.context import EventCallback
from wslstack.core.models.config import InstallerConfig
from wslstack.core.persistence.state_file import StateStore
from wslstack.core.services.stack import StackReport, service_status, start_all, stop_all
from wslstack.core.use_cases.install import build_context


def start_stack(config: InstallerConfig, on_event: EventCallback | None = None) -> StackReport:
    ctx = build_context(config, on_event)
    return start_all(ctx, StateStore(config.state_file))


def stop_stack(config: InstallerConfig, on_event: EventCallback | None = None) -> StackReport:
    ctx = build_context(config, on_event)
    return stop_all(ctx, StateStore(config.state_file))


def stack_status() -> list[dict]:
    return service_status()
