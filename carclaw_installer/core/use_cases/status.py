"""
Status and plan use cases — read-only views of the host.

``get_status`` probes and reports. ``preview_plan`` also runs the
wizard non-interactively and returns the plan an install would run.
Neither changes anything on the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from carclaw_installer.core.context import InstallContext
from carclaw_installer.core.engine.executor import ExecutionPlan
from carclaw_installer.core.engine.planner import plan_install
from carclaw_installer.core.models.state import HostState
from carclaw_installer.core.persistence.audit import AuditEntry
from carclaw_installer.core.services.prober import probe_host
from carclaw_installer.core.services.prompts import DefaultsPrompt, UserPrompt
from carclaw_installer.core.services.wizard import SetupWizard

logger = logging.getLogger(__name__)


@dataclass
class StatusResult:
    target: str = ""
    platform: str = ""
    install_dir: str = ""
    host: HostState | None = None
    unit_path: str = ""
    commands: dict[str, str] = field(default_factory=dict)
    last_run: AuditEntry | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "target": self.target,
            "platform": self.platform,
            "install_dir": self.install_dir,
            "unit_path": self.unit_path,
            "commands": dict(self.commands),
        }
        if self.host is not None:
            result["host"] = self.host.to_dict()
        if self.last_run is not None:
            result["last_run"] = self.last_run.model_dump(mode="json")
        return result


@dataclass
class PlanResult:
    host: HostState | None = None
    plan: ExecutionPlan | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.host is not None:
            result["host"] = self.host.to_dict()
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        return result


def get_status(ctx: InstallContext) -> StatusResult:
    """Probe the host and report what is installed."""
    name = ctx.target.service_name
    result = StatusResult(
        target=ctx.target.name,
        platform=ctx.profile.os_family,
        install_dir=str(ctx.install_dir),
        unit_path=str(ctx.registrar.unit_path(name)),
        commands=ctx.registrar.describe_commands(name),
    )
    result.host = probe_host(ctx)

    result.last_run = ctx.audit.last_for(ctx.target.name)
    return result


def preview_plan(
    ctx: InstallContext,
    prompt: UserPrompt | None = None,
    *,
    update: bool = False,
    recreate_service: bool = False,
) -> PlanResult:
    """The plan an install would run with default answers."""
    result = PlanResult()
    result.host = probe_host(ctx)

    prompt = prompt or DefaultsPrompt(echo=False)
    collected = SetupWizard(
        ctx,
        prompt,
        recreate_service=recreate_service,
        start_service=True,
        update=update,
    ).collect(result.host)

    result.plan = plan_install(result.host, collected.desired, ctx.profile, ctx.target)
    logger.debug("Preview: %d pending action(s)", len(result.plan.pending))
    return result
