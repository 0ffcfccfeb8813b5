"""
Service registrar contract — one interface over systemd and launchd.

A registrar turns a backend-neutral ServiceUnit into a registered
background service and reports on it. Registrars raise
``RegistrarError`` when the service manager refuses a command; the
service adapter turns that into a failed receipt.

``remove`` does not stop a running service. Callers stop first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from carclaw_installer.adapters.shell.command import CommandResult, CommandRunner
from carclaw_installer.core.models.service import ServiceUnit
from carclaw_installer.core.models.state import ServiceState


class ServiceStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class RegistrarError(RuntimeError):
    """The service manager rejected a command."""


class ServiceRegistrar(ABC):
    """Create, remove, start, stop, and inspect one kind of service."""

    backend: str = ""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    @abstractmethod
    def unit_path(self, name: str) -> Path:
        """Where the service descriptor for ``name`` lives."""

    @abstractmethod
    def render(self, unit: ServiceUnit) -> str:
        """The descriptor text for ``unit``."""

    @abstractmethod
    def create(self, unit: ServiceUnit) -> None:
        """Write the descriptor and register it with the service manager."""

    @abstractmethod
    def remove(self, name: str) -> None:
        """Unregister and delete the descriptor."""

    @abstractmethod
    def start(self, name: str) -> None: ...

    @abstractmethod
    def stop(self, name: str) -> None: ...

    @abstractmethod
    def status(self, name: str) -> ServiceStatus: ...

    @abstractmethod
    def describe_commands(self, name: str) -> dict[str, str]:
        """Shell commands a user can run to manage the service by hand."""

    def is_registered(self, name: str) -> bool:
        return self._runner.path_exists(self.unit_path(name))

    def state(self, name: str) -> ServiceState:
        """Collapse registration and status into a lifecycle state."""
        if not self.is_registered(name):
            return ServiceState.UNREGISTERED
        if self.status(name) == ServiceStatus.RUNNING:
            return ServiceState.RUNNING
        # Unreadable status on a registered unit counts as stopped
        return ServiceState.REGISTERED

    def _require(self, result: CommandResult, what: str) -> CommandResult:
        if not result.ok:
            raise RegistrarError(f"{what} failed: {result.error_text}")
        return result
