"""
Post-install health check — is the installed program able to run?

Three components are checked and rolled up into one status:

    entrypoint   ``node --check <entrypoint>`` in the install dir
    port         bridge port free or already served by our service
    service      registrar status of the target's service

An unhealthy entrypoint fails the install (exit 1). A busy port is only
``degraded``: the bridge itself may be the one listening.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from carclaw_installer.adapters.languages.node import resolve_node
from carclaw_installer.adapters.services.base import ServiceStatus
from carclaw_installer.core.context import InstallContext

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"
UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = UNKNOWN
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
    """Rolled-up health of an installed target."""

    status: str = HEALTHY
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    @property
    def failed(self) -> bool:
        return self.status == UNHEALTHY

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        self._recalculate()

    def get(self, name: str) -> ComponentHealth | None:
        return next((c for c in self.components if c.name == name), None)

    def _recalculate(self) -> None:
        statuses = {c.status for c in self.components}
        if UNHEALTHY in statuses:
            self.status = UNHEALTHY
        elif DEGRADED in statuses:
            self.status = DEGRADED
        elif statuses <= {HEALTHY}:
            self.status = HEALTHY
        else:
            self.status = UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


# ── Checks ──────────────────────────────────────────────────────────


def check_entrypoint(ctx: InstallContext) -> ComponentHealth:
    """Syntax-check the target's entrypoint with node."""
    entry = ctx.install_dir / ctx.target.entrypoint
    if not entry.is_file():
        return ComponentHealth(
            name="entrypoint",
            status=UNHEALTHY,
            message=f"{entry} not found",
        )

    node = resolve_node(ctx.runner, ctx.profile)
    if not node:
        return ComponentHealth(
            name="entrypoint",
            status=UNHEALTHY,
            message="node not found",
        )

    result = ctx.runner.run([node, "--check", ctx.target.entrypoint], cwd=ctx.install_dir)
    if not result.ok:
        return ComponentHealth(
            name="entrypoint",
            status=UNHEALTHY,
            message=f"{ctx.target.entrypoint} has errors",
            details={"output": result.error_text},
        )
    return ComponentHealth(
        name="entrypoint",
        status=HEALTHY,
        message=f"{ctx.target.entrypoint} syntax OK",
    )


def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """True when something accepts connections on ``host:port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.5)
        return sock.connect_ex((host, port)) == 0


def check_port(port: int, service_running: bool = False) -> ComponentHealth:
    """Warn when the bridge port is taken by something other than our service."""
    try:
        busy = port_in_use(port)
    except OSError as e:
        return ComponentHealth(name="port", status=UNKNOWN, message=f"Cannot check port {port}: {e}")

    if not busy:
        return ComponentHealth(name="port", status=HEALTHY, message=f"Port {port} available")
    if service_running:
        return ComponentHealth(name="port", status=HEALTHY, message=f"Port {port} served by the bridge")
    return ComponentHealth(
        name="port",
        status=DEGRADED,
        message=f"Port {port} is in use; the bridge may fail to start",
    )


def check_service(ctx: InstallContext) -> ComponentHealth:
    name = ctx.target.service_name
    if not ctx.registrar.is_registered(name):
        return ComponentHealth(name="service", status=UNKNOWN, message=f"{name} not registered")

    status = ctx.registrar.status(name)
    details = {"unit_path": str(ctx.registrar.unit_path(name)), "status": status.value}
    if status == ServiceStatus.RUNNING:
        return ComponentHealth(name="service", status=HEALTHY, message=f"{name} running", details=details)
    if status == ServiceStatus.STOPPED:
        return ComponentHealth(name="service", status=HEALTHY, message=f"{name} registered, not running", details=details)
    return ComponentHealth(name="service", status=UNKNOWN, message=f"{name} status unknown", details=details)


def check_install_health(ctx: InstallContext) -> SystemHealth:
    """Run every check that applies to the context's target."""
    health = SystemHealth()
    health.add(check_entrypoint(ctx))

    service = check_service(ctx)
    if ctx.target.name == "bridge":
        running = service.details.get("status") == ServiceStatus.RUNNING.value
        health.add(check_port(ctx.settings.bridge_port, service_running=running))
    health.add(service)

    logger.info("Health: %s", health.status)
    return health
