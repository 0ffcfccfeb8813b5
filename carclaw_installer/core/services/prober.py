"""
State prober — observes every resource the installer manages.

Probes are read-only. A probe that raises (unreadable directory,
service manager not responding) records the resource as ``unknown``
with the error as detail; the planner treats unknown as missing.

Used by:
    - use_cases/install.py     (before planning, and again after executing)
    - use_cases/uninstall.py
    - use_cases/status.py
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from carclaw_installer.adapters.discovery.avahi import discovery_file
from carclaw_installer.adapters.languages.node import node_version, parse_major
from carclaw_installer.adapters.system.packages import get_package_manager
from carclaw_installer.core.context import InstallContext
from carclaw_installer.core.models.state import (
    CLI_TOOL,
    CONFIG,
    DEPENDENCIES,
    DISCOVERY,
    PACKAGES,
    REPOSITORY,
    RUNTIME,
    SERVICE,
    HostState,
    ResourceStatus,
    ServiceState,
)

logger = logging.getLogger(__name__)

Probe = Callable[[InstallContext, HostState], tuple[ResourceStatus, str | None]]


# ── Probes ──────────────────────────────────────────────────────────


def probe_runtime(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    version = node_version(ctx.runner, ctx.profile)
    major = parse_major(version)
    if major is None:
        return ResourceStatus.MISSING, None
    if major < ctx.settings.min_node_major:
        return ResourceStatus.MISCONFIGURED, version
    return ResourceStatus.PRESENT, version


def probe_packages(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    candidates = [*ctx.profile.system_packages, *ctx.profile.optional_packages]
    if not candidates:
        return ResourceStatus.PRESENT, None

    missing = get_package_manager(ctx.profile, ctx.runner).missing(candidates)
    host.missing_packages = missing
    if missing:
        return ResourceStatus.MISSING, f"{len(missing)} missing: {', '.join(missing)}"
    return ResourceStatus.PRESENT, None


def probe_repository(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    marker = ctx.install_dir / ctx.target.marker_file
    if ctx.install_dir.is_dir() and marker.is_file():
        return ResourceStatus.PRESENT, str(ctx.install_dir)
    if ctx.install_dir.exists():
        return ResourceStatus.MISCONFIGURED, f"{ctx.install_dir} has no {ctx.target.marker_file}"
    return ResourceStatus.MISSING, None


def probe_dependencies(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    if (ctx.install_dir / "node_modules").is_dir():
        return ResourceStatus.PRESENT, None
    return ResourceStatus.MISSING, None


def probe_cli_tool(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    path = find_claude(ctx)
    if path:
        return ResourceStatus.PRESENT, path
    return ResourceStatus.MISSING, None


def probe_config(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    if not ctx.store.exists():
        return ResourceStatus.MISSING, None
    host.config_values = ctx.store.values()
    return ResourceStatus.PRESENT, f"{len(host.config_values)} keys"


def probe_discovery(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    path = discovery_file(ctx.target.service_name, ctx.discovery_dir)
    if ctx.runner.path_exists(path):
        return ResourceStatus.PRESENT, str(path)
    return ResourceStatus.MISSING, None


def probe_service(ctx: InstallContext, host: HostState) -> tuple[ResourceStatus, str | None]:
    host.service = ctx.registrar.state(ctx.target.service_name)
    if host.service == ServiceState.UNREGISTERED:
        return ResourceStatus.MISSING, host.service.value
    return ResourceStatus.PRESENT, host.service.value


# ── Helpers ─────────────────────────────────────────────────────────


def find_claude(ctx: InstallContext) -> str | None:
    """The claude CLI on PATH, or inside the checkout's node_modules."""
    found = ctx.runner.which("claude")
    if found:
        return found
    local = ctx.install_dir / "node_modules" / ".bin" / "claude"
    if local.exists():
        return str(local)
    return None


def default_machine_name(ctx: InstallContext) -> str:
    """How this agent names itself unless told otherwise.

    macOS uses the Computer Name with spaces turned into dashes; other
    hosts use the short hostname in upper case.
    """
    short = ctx.hostname.split(".")[0]
    if ctx.profile.os_family != "macos":
        return short.upper()
    result = ctx.runner.run(["scutil", "--get", "ComputerName"], timeout=10)
    name = result.stdout.strip() if result.ok else ""
    return name.replace(" ", "-") or short


def _probes_for(ctx: InstallContext) -> list[tuple[str, Probe]]:
    probes: list[tuple[str, Probe]] = [
        (RUNTIME, probe_runtime),
        (PACKAGES, probe_packages),
        (REPOSITORY, probe_repository),
        (DEPENDENCIES, probe_dependencies),
    ]
    if ctx.target.needs_cli:
        probes.append((CLI_TOOL, probe_cli_tool))
    probes.append((CONFIG, probe_config))
    if ctx.profile.discovery_backend and ctx.target.publishes_discovery:
        probes.append((DISCOVERY, probe_discovery))
    probes.append((SERVICE, probe_service))
    return probes


def probe_host(ctx: InstallContext) -> HostState:
    """Observe the host. Never raises."""
    host = HostState(platform=ctx.profile.os_family, target=ctx.target.name)

    for resource, probe in _probes_for(ctx):
        try:
            status, detail = probe(ctx, host)
        except Exception as e:
            logger.warning("Could not probe %s: %s", resource, e)
            status, detail = ResourceStatus.UNKNOWN, str(e)
            if resource == SERVICE:
                host.service = ServiceState.UNKNOWN
        host.set_resource(resource, status, detail)
        logger.debug("probe %s → %s (%s)", resource, status.value, detail or "")

    return host


def summarize(host: HostState) -> list[tuple[str, str, str]]:
    """(resource, status, detail) rows for display."""
    return [
        (name, state.status.value, state.detail or "")
        for name, state in host.resources.items()
    ]
