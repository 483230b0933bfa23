"""
Domain models — Pydantic types for the installer.

    from wslstack.core.models import InstallerConfig, InstallStep, DownloadTarget
"""

from wslstack.core.models.config import (
    ComponentVersions,
    DownloadSettings,
    HiveDatabase,
    InstallerConfig,
    PreflightSettings,
)
from wslstack.core.models.download import DownloadTarget
from wslstack.core.models.service import HealthCheck, OnTimeout, ServiceHandle, StartOutcome
from wslstack.core.models.step import InstallStep, StepEvent, StepResult

__all__ = [
    "ComponentVersions",
    "DownloadSettings",
    "DownloadTarget",
    "HealthCheck",
    "HiveDatabase",
    "InstallStep",
    "InstallerConfig",
    "OnTimeout",
    "PreflightSettings",
    "ServiceHandle",
    "StartOutcome",
    "StepEvent",
    "StepResult",
]
