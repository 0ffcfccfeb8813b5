"""
Install use case — the whole convergence run for one target.

    probe → wizard → plan → execute → re-probe → health → audit

This is the vertical slice behind ``carclaw-install``. It never
raises for host problems: everything ends up in the InstallResult,
which the CLI renders and maps to an exit code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from carclaw_installer.adapters.registry import AdapterRegistry
from carclaw_installer.core.context import InstallContext, build_registry
from carclaw_installer.core.engine.executor import (
    ExecutionPlan,
    ExecutionReport,
    build_audit_entry,
    execute_plan,
    generate_operation_id,
)
from carclaw_installer.core.engine.planner import plan_install
from carclaw_installer.core.models.desired import DesiredConfig, ValidationFailure
from carclaw_installer.core.models.state import HostState
from carclaw_installer.core.observability.health import SystemHealth, check_install_health
from carclaw_installer.core.services.prober import probe_host
from carclaw_installer.core.services.prompts import UserPrompt
from carclaw_installer.core.services.wizard import SetupWizard

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Everything an install run produced."""

    target: str = ""
    platform: str = ""
    install_dir: str = ""
    before: HostState | None = None
    after: HostState | None = None
    desired: DesiredConfig | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    health: SystemHealth | None = None
    validation_failures: list[ValidationFailure] = field(default_factory=list)
    commands: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def already_converged(self) -> bool:
        return self.plan is not None and self.plan.is_empty

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        if self.report is not None and self.report.halted:
            return 1
        if self.health is not None and self.health.failed:
            return 1
        return 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "target": self.target,
            "platform": self.platform,
            "install_dir": self.install_dir,
            "exit_code": self.exit_code,
        }
        if self.error:
            result["error"] = self.error
        if self.before is not None:
            result["before"] = self.before.to_dict()
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        if self.report is not None:
            result["report"] = self.report.to_dict()
        if self.after is not None:
            result["after"] = self.after.to_dict()
        if self.health is not None:
            result["health"] = self.health.to_dict()
        result["validation_failures"] = [f.model_dump() for f in self.validation_failures]
        result["commands"] = dict(self.commands)
        return result


def run_install(
    ctx: InstallContext,
    prompt: UserPrompt,
    *,
    recreate_service: bool = False,
    start_service: bool | None = None,
    update: bool = False,
    dry_run: bool = False,
    mock: bool = False,
    registry: AdapterRegistry | None = None,
) -> InstallResult:
    """Bring the host to the configuration the user asks for.

    Args:
        ctx: Install context for the chosen target.
        prompt: Where wizard questions go.
        recreate_service: Replace an existing service unit without asking.
        start_service: Start the service afterwards; None means ask.
        update: Pull latest code and reinstall dependencies.
        dry_run: Plan and validate, change nothing.
        mock: Dispatch every action to the mock adapter.
        registry: Pre-built adapter registry (tests).

    Returns:
        InstallResult; ``exit_code`` is 1 on a hard failure or a
        failed health check.
    """
    result = InstallResult(
        target=ctx.target.name,
        platform=ctx.profile.os_family,
        install_dir=str(ctx.install_dir),
    )
    operation_id = generate_operation_id("install")

    # ── Probe ────────────────────────────────────────────────────
    result.before = probe_host(ctx)

    # ── Wizard ───────────────────────────────────────────────────
    wizard = SetupWizard(
        ctx,
        prompt,
        recreate_service=recreate_service,
        start_service=start_service,
        update=update,
    )
    collected = wizard.collect(result.before)
    result.desired = collected.desired
    result.validation_failures = collected.validation_failures

    # ── Plan ─────────────────────────────────────────────────────
    plan = plan_install(
        result.before,
        collected.desired,
        ctx.profile,
        ctx.target,
        operation_id=operation_id,
    )
    result.plan = plan
    logger.info("Planned %d action(s), %d pending", plan.total_actions, len(plan.pending))

    # ── Execute ──────────────────────────────────────────────────
    if registry is None:
        registry = build_registry(ctx, mock=mock)
    report = execute_plan(plan, registry, dry_run=dry_run)
    result.report = report
    if report.halted:
        result.error = report.errors[0] if report.errors else f"{report.halted_at} failed"

    # ── Verify ───────────────────────────────────────────────────
    if not dry_run and not mock:
        result.after = probe_host(ctx)
        if not report.halted:
            result.health = check_install_health(ctx)

    result.commands = ctx.registrar.describe_commands(ctx.target.service_name)

    # ── Audit ────────────────────────────────────────────────────
    if not dry_run:
        ctx.audit.write(build_audit_entry(
            plan,
            report,
            platform=ctx.profile.os_family,
            install_dir=str(ctx.install_dir),
            validation_failures=[f"{f.service}: {f.message}" for f in result.validation_failures],
            context={
                "mock": mock,
                "update": update,
                "services": sorted(collected.desired.selected_services),
                "config_keys": sorted(collected.desired.values),
                "health": result.health.status if result.health else None,
            },
        ))

    return result
