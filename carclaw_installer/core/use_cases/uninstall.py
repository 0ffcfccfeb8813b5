"""
Uninstall use case — stop and unregister the service, optionally
delete the checkout.

The config file lives inside the checkout, so it goes only when the
files do.
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
from carclaw_installer.core.engine.planner import plan_uninstall
from carclaw_installer.core.models.state import HostState
from carclaw_installer.core.services.prober import probe_host
from carclaw_installer.core.services.prompts import UserPrompt

logger = logging.getLogger(__name__)


@dataclass
class UninstallResult:
    target: str = ""
    install_dir: str = ""
    before: HostState | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    removed_files: bool = False
    notes: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return 1 if self.error else 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "target": self.target,
            "install_dir": self.install_dir,
            "removed_files": self.removed_files,
            "exit_code": self.exit_code,
            "notes": list(self.notes),
        }
        if self.error:
            result["error"] = self.error
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        if self.report is not None:
            result["report"] = self.report.to_dict()
        return result


def run_uninstall(
    ctx: InstallContext,
    prompt: UserPrompt,
    *,
    remove_files: bool | None = None,
    dry_run: bool = False,
    mock: bool = False,
    registry: AdapterRegistry | None = None,
) -> UninstallResult:
    """Reverse an install of ``ctx.target``.

    Args:
        remove_files: Delete the install dir; None means ask (default no).
    """
    result = UninstallResult(target=ctx.target.name, install_dir=str(ctx.install_dir))
    result.before = probe_host(ctx)

    if remove_files is None:
        remove_files = ctx.install_dir.exists() and prompt.confirm(
            "remove_files",
            f"Also delete {ctx.install_dir} (code and .env)?",
            default=False,
        )
    result.removed_files = remove_files
    if not remove_files and ctx.install_dir.exists():
        result.notes.append(f"Files kept in {ctx.install_dir}")

    plan = plan_uninstall(
        result.before,
        ctx.target,
        str(ctx.install_dir),
        remove_files=remove_files,
        operation_id=generate_operation_id("uninstall"),
    )
    result.plan = plan

    if registry is None:
        registry = build_registry(ctx, mock=mock)
    report = execute_plan(plan, registry, dry_run=dry_run)
    result.report = report
    if report.halted:
        result.error = report.errors[0] if report.errors else f"{report.halted_at} failed"
        result.removed_files = False

    if ctx.profile.discovery_backend and ctx.target.publishes_discovery:
        result.notes.append("The Bonjour service file was left in place")

    if not dry_run:
        ctx.audit.write(build_audit_entry(
            plan,
            report,
            platform=ctx.profile.os_family,
            install_dir=str(ctx.install_dir),
            context={"mock": mock, "remove_files": remove_files},
        ))

    logger.info("Uninstall %s: %s", ctx.target.name, report.status)
    return result
