"""
Service unit builder — the ServiceUnit each target registers.

Resolves the node binary the service manager should run and fills
in the per-platform details: the bridge waits for avahi on Debian and
logs to the journal there, launchd services log under /tmp, and the
agent daemon receives its configuration as environment variables.
"""

from __future__ import annotations

from pathlib import Path

from carclaw_installer.adapters.languages.node import resolve_node
from carclaw_installer.core.context import InstallContext
from carclaw_installer.core.models.service import RestartPolicy, ServiceUnit


def node_path(ctx: InstallContext) -> str:
    """Absolute node path; before node is installed, where the install will put it."""
    found = resolve_node(ctx.runner, ctx.profile)
    if found:
        return found
    return ctx.profile.node_candidates[0] if ctx.profile.node_candidates else "node"


def build_unit(ctx: InstallContext, values: dict[str, str] | None = None) -> ServiceUnit:
    """The unit for ``ctx.target``.

    Args:
        values: Resolved config values; the agent unit exports its
            keys as environment variables.
    """
    target = ctx.target
    executable = node_path(ctx)

    env: dict[str, str] = {}
    after: tuple[str, ...] = ("network.target",)
    log_path: str | None = str(Path(ctx.profile.log_dir) / target.log_name)

    if target.name == "bridge":
        description = "CarClaw Multi-Service Bridge"
        if ctx.profile.service_backend == "systemd":
            env["NODE_ENV"] = "production"
            after = ("network.target", "avahi-daemon.service")
            log_path = None
    else:
        description = "CarClaw Agent Daemon"
        values = values or {}
        for key in target.config_keys:
            env[key] = values.get(key, "")

    return ServiceUnit(
        name=target.service_name,
        description=description,
        executable_path=executable,
        arguments=target.arguments,
        working_dir=str(ctx.install_dir),
        env_vars=env,
        restart_policy=RestartPolicy(mode="on-failure", delay_seconds=5),
        log_path=log_path,
        user=ctx.user if ctx.profile.service_backend == "systemd" else None,
        after=after,
    )
