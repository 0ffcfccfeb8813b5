"""Service registrars — systemd and launchd behind one contract."""

from __future__ import annotations

from pathlib import Path

from carclaw_installer.adapters.services.adapter import ServiceAdapter
from carclaw_installer.adapters.services.base import (
    RegistrarError,
    ServiceRegistrar,
    ServiceStatus,
)
from carclaw_installer.adapters.services.launchd import LaunchdRegistrar
from carclaw_installer.adapters.services.systemd import SYSTEMD_UNIT_DIR, SystemdRegistrar
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.platform import PlatformProfile


def get_registrar(
    profile: PlatformProfile,
    runner: CommandRunner,
    unit_dir: Path | None = None,
) -> ServiceRegistrar:
    """Registrar for the profile's service backend.

    Args:
        unit_dir: Override where descriptors are written (tests).
    """
    if profile.service_backend == "launchd":
        return LaunchdRegistrar(runner, agents_dir=unit_dir, label_prefix=profile.launchd_label_prefix)
    return SystemdRegistrar(runner, unit_dir=unit_dir or SYSTEMD_UNIT_DIR)


__all__ = [
    "LaunchdRegistrar",
    "RegistrarError",
    "ServiceAdapter",
    "ServiceRegistrar",
    "ServiceStatus",
    "SystemdRegistrar",
    "get_registrar",
]
