"""
HostState — what the prober observed on this machine.

Recomputed at the start of every run and never persisted. The
planner compares it against the DesiredConfig to decide which
actions are needed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


# ── Resource names ─────────────────────────────────────────────────

RUNTIME = "runtime"
PACKAGES = "packages"
REPOSITORY = "repository"
DEPENDENCIES = "dependencies"
CLI_TOOL = "cli_tool"
CONFIG = "config"
DISCOVERY = "discovery"
SERVICE = "service"


class ResourceStatus(str, Enum):
    MISSING = "missing"
    PRESENT = "present"
    MISCONFIGURED = "misconfigured"
    UNKNOWN = "unknown"


class ServiceState(str, Enum):
    """Lifecycle position of a service unit.

    unregistered → registered → running → registered (stopped) → unregistered
    """

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    RUNNING = "running"
    UNKNOWN = "unknown"


class ResourceState(BaseModel):
    """Observed state of a single resource."""

    name: str
    status: ResourceStatus = ResourceStatus.UNKNOWN
    detail: str | None = None        # version, path, or probe error

    @property
    def satisfied(self) -> bool:
        return self.status == ResourceStatus.PRESENT


class HostState(BaseModel):
    """Snapshot of every manageable resource on the host."""

    probed_at: str = Field(default_factory=_now_iso)
    platform: str = ""
    target: str = ""

    resources: dict[str, ResourceState] = Field(default_factory=dict)
    config_values: dict[str, str] = Field(default_factory=dict)
    missing_packages: list[str] = Field(default_factory=list)
    service: ServiceState = ServiceState.UNREGISTERED

    def set_resource(
        self,
        name: str,
        status: ResourceStatus,
        detail: str | None = None,
    ) -> None:
        """Record the observed status of a resource."""
        self.resources[name] = ResourceState(name=name, status=status, detail=detail)

    def status_of(self, name: str) -> ResourceStatus:
        """Status of a resource; unprobed resources count as missing."""
        state = self.resources.get(name)
        return state.status if state else ResourceStatus.MISSING

    def is_satisfied(self, name: str) -> bool:
        return self.status_of(name) == ResourceStatus.PRESENT

    def detail_of(self, name: str) -> str | None:
        state = self.resources.get(name)
        return state.detail if state else None

    @property
    def service_registered(self) -> bool:
        return self.service in (ServiceState.REGISTERED, ServiceState.RUNNING)

    @property
    def service_running(self) -> bool:
        return self.service == ServiceState.RUNNING

    def to_dict(self, include_values: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "probed_at": self.probed_at,
            "platform": self.platform,
            "target": self.target,
            "resources": {
                name: {"status": r.status.value, "detail": r.detail}
                for name, r in self.resources.items()
            },
            "service": self.service.value,
            "missing_packages": list(self.missing_packages),
            "config_keys": sorted(self.config_values),
        }
        if include_values:
            data["config_values"] = dict(self.config_values)
        return data
