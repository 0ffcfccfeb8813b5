"""
Action planner — turns (HostState, DesiredConfig) into an ExecutionPlan.

The planner is pure: no I/O, no clock beyond what the caller passes
in. Resources are visited in a fixed order and each one yields either
the actions that converge it or a single noop:

    runtime → packages → repository → dependencies → cli_tool
    → config → discovery → service registration → service start

Running the planner against the state a plan produced yields a plan
with no pending actions.
"""

from __future__ import annotations

from typing import Any

from carclaw_installer.adapters.languages.node import CLAUDE_CLI_PACKAGE
from carclaw_installer.core.engine.executor import ExecutionPlan
from carclaw_installer.core.models.action import DEFAULT_ADAPTERS, Action, ActionKind
from carclaw_installer.core.models.desired import DesiredConfig
from carclaw_installer.core.models.platform import PlatformProfile, TargetSpec
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
)

# Optional messaging services and the config keys each one owns
SERVICE_CONFIG_KEYS: dict[str, tuple[str, ...]] = {
    "telegram": ("TELEGRAM_TOKEN",),
    "whatsapp": ("WHATSAPP_ENABLED",),
    "imessage": ("IMESSAGE_ENABLED", "BLUEBUBBLES_URL", "BLUEBUBBLES_PASSWORD"),
}


def owned_config_keys(target: TargetSpec, selected_services: set[str]) -> list[str]:
    """Config keys this run may write, in write order."""
    keys: list[str] = []
    if target.uses_messaging_services:
        for service, service_keys in SERVICE_CONFIG_KEYS.items():
            if service in selected_services:
                keys.extend(service_keys)
    keys.extend(k for k in target.config_keys if k not in keys)
    return keys


class _PlanBuilder:
    def __init__(self, plan: ExecutionPlan):
        self.plan = plan

    def add(
        self,
        kind: ActionKind,
        resource: str,
        name: str,
        *,
        best_effort: bool = False,
        adapter: str | None = None,
        **payload: Any,
    ) -> Action:
        index = len(self.plan.actions) + 1
        suffix = payload.get("key") or resource
        action = Action(
            id=f"{index:02d}:{kind.value}:{suffix}",
            kind=kind,
            resource=resource,
            adapter=adapter or DEFAULT_ADAPTERS[kind],
            name=name,
            best_effort=best_effort,
            **payload,
        )
        self.plan.actions.append(action)
        return action

    def noop(self, resource: str, name: str) -> Action:
        return self.add(ActionKind.NOOP, resource, name)


def plan_install(
    host: HostState,
    desired: DesiredConfig,
    profile: PlatformProfile,
    target: TargetSpec,
    operation_id: str = "",
) -> ExecutionPlan:
    """Compute the ordered actions that bring ``host`` to ``desired``.

    Args:
        host: Probed state of the machine.
        desired: What the user asked for.
        profile: Host family (selects which steps apply).
        target: Which program is being installed.
        operation_id: Stamped onto the plan for the audit ledger.
    """
    b = _PlanBuilder(ExecutionPlan(operation_id=operation_id, operation="install", target=target.name))

    # ── Runtime ─────────────────────────────────────────────────
    if host.is_satisfied(RUNTIME):
        version = host.detail_of(RUNTIME)
        b.noop(RUNTIME, f"Node.js v{version} already installed" if version else "Node.js already installed")
    else:
        b.add(ActionKind.INSTALL_RUNTIME, RUNTIME, f"Install Node.js via {profile.package_manager}")

    # ── System packages ─────────────────────────────────────────
    if host.status_of(PACKAGES) in (ResourceStatus.PRESENT, ResourceStatus.MISSING):
        missing = [p for p in desired.packages if p in host.missing_packages]
    else:
        missing = list(desired.packages)
    if missing:
        b.add(
            ActionKind.INSTALL_PACKAGES,
            PACKAGES,
            f"Install {len(missing)} system package(s)",
            best_effort=True,
            packages=tuple(missing),
        )
    else:
        b.noop(PACKAGES, "System packages already installed")

    # ── Repository ──────────────────────────────────────────────
    repo_present = host.is_satisfied(REPOSITORY)
    repo_params = {
        "repo_url": desired.repo_url,
        "dest": desired.install_dir,
        "marker": target.marker_file,
    }
    if not repo_present:
        b.add(ActionKind.CLONE_OR_UPDATE_REPO, REPOSITORY, "Clone bridge code", params=repo_params)
    elif desired.update:
        b.add(
            ActionKind.CLONE_OR_UPDATE_REPO,
            REPOSITORY,
            "Pull latest bridge code",
            best_effort=True,
            params=repo_params,
        )
    else:
        b.noop(REPOSITORY, "Bridge code already checked out")

    # ── npm dependencies ────────────────────────────────────────
    if not repo_present or desired.update or not host.is_satisfied(DEPENDENCIES):
        b.add(ActionKind.INSTALL_DEPENDENCIES, DEPENDENCIES, "Install npm dependencies")
    else:
        b.noop(DEPENDENCIES, "npm dependencies already installed")

    # ── Agent CLI ───────────────────────────────────────────────
    if desired.install_cli:
        if host.is_satisfied(CLI_TOOL):
            b.noop(CLI_TOOL, "claude CLI already available")
        else:
            b.add(
                ActionKind.INSTALL_DEPENDENCIES,
                CLI_TOOL,
                "Install claude CLI",
                best_effort=True,
                params={"package": CLAUDE_CLI_PACKAGE},
            )

    # ── Config ──────────────────────────────────────────────────
    config_readable = host.is_satisfied(CONFIG)
    wrote_config = False
    for key in owned_config_keys(target, desired.selected_services):
        value = desired.values.get(key)
        if value is None:
            continue
        if config_readable and host.config_values.get(key) == value:
            continue
        b.add(ActionKind.SET_CONFIG_VALUE, CONFIG, f"Set {key}", key=key, value=value)
        wrote_config = True
    if not wrote_config:
        b.noop(CONFIG, "Configuration up to date")

    # ── Discovery ───────────────────────────────────────────────
    if desired.discovery:
        if host.is_satisfied(DISCOVERY):
            b.noop(DISCOVERY, "Discovery record already registered")
        else:
            b.add(
                ActionKind.REGISTER_DISCOVERY,
                DISCOVERY,
                "Register Bonjour service",
                best_effort=True,
                params={"name": target.service_name, "port": desired.discovery_port},
            )

    # ── Service ─────────────────────────────────────────────────
    unit = desired.unit
    if unit is None:
        b.noop(SERVICE, "No background service requested")
        return b.plan

    registered = host.service_registered
    running = host.service_running

    if not registered:
        b.add(ActionKind.REGISTER_SERVICE, SERVICE, f"Register {unit.name}", unit=unit)
        registered = True
    elif desired.recreate_service:
        if running:
            b.add(ActionKind.STOP_SERVICE, SERVICE, f"Stop {unit.name}", unit=unit)
            running = False
        b.add(ActionKind.REGISTER_SERVICE, SERVICE, f"Recreate {unit.name}", unit=unit, replace=True)
    else:
        b.noop(SERVICE, f"{unit.name} already registered")

    if desired.start_service and registered and not running:
        b.add(ActionKind.START_SERVICE, SERVICE, f"Start {unit.name}", best_effort=True, unit=unit)
    elif running:
        b.noop(SERVICE, f"{unit.name} already running")

    return b.plan


def plan_uninstall(
    host: HostState,
    target: TargetSpec,
    install_dir: str,
    remove_files: bool = False,
    operation_id: str = "",
) -> ExecutionPlan:
    """Reverse an install: stop, unregister, optionally delete the checkout.

    The stop is a hard action: a unit that will not stop is never removed.
    """
    b = _PlanBuilder(ExecutionPlan(operation_id=operation_id, operation="uninstall", target=target.name))
    service_params = {"service": target.service_name}

    if host.service_running:
        b.add(
            ActionKind.STOP_SERVICE,
            SERVICE,
            f"Stop {target.service_name}",
            params=service_params,
        )
    if host.service_registered:
        b.add(
            ActionKind.REMOVE_SERVICE,
            SERVICE,
            f"Remove {target.service_name}",
            params=service_params,
        )
    else:
        b.noop(SERVICE, f"No {target.service_name} service found")

    if remove_files:
        b.add(
            ActionKind.REMOVE_FILES,
            REPOSITORY,
            f"Remove {install_dir}",
            params={"path": install_dir},
        )

    return b.plan
