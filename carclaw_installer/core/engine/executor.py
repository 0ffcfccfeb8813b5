"""
Engine executor — applies a plan through the adapter registry.

Actions run strictly in plan order. A failed hard action halts the
run and every remaining action is reported as skipped. A failed
best-effort action becomes a warning and the run continues.

Flow:
    plan → dispatch each action → collect receipts → report
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from carclaw_installer.adapters.registry import AdapterRegistry
from carclaw_installer.core.models.action import Action, Receipt
from carclaw_installer.core.persistence.audit import AuditEntry

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """An ordered list of actions for one install or uninstall run."""

    operation_id: str = ""
    operation: str = "install"
    target: str = ""
    actions: list[Action] = field(default_factory=list)

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    @property
    def pending(self) -> list[Action]:
        """Actions that change the host (everything but noops)."""
        return [a for a in self.actions if not a.is_noop]

    @property
    def is_empty(self) -> bool:
        """True when the host already matches the desired config."""
        return not self.pending

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "operation": self.operation,
            "target": self.target,
            "pending": len(self.pending),
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    operation_id: str = ""
    operation: str = "install"
    dry_run: bool = False
    receipts: list[Receipt] = field(default_factory=list)
    halted_at: str | None = None        # action id of the hard failure
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.skipped)

    @property
    def halted(self) -> bool:
        return self.halted_at is not None

    @property
    def status(self) -> str:
        if self.halted:
            return "failed"
        if self.dry_run:
            return "planned"
        if self.warnings:
            return "partial"
        return "ok"

    def receipt_for(self, action_id: str) -> Receipt | None:
        for receipt in self.receipts:
            if receipt.action_id == action_id:
                return receipt
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "operation": self.operation,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "halted_at": self.halted_at,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def execute_plan(
    plan: ExecutionPlan,
    registry: AdapterRegistry,
    dry_run: bool = False,
) -> ExecutionReport:
    """Execute all actions in a plan through the adapter registry.

    Args:
        plan: The execution plan.
        registry: Adapter registry for dispatch.
        dry_run: If True, validate but don't execute.

    Returns:
        ExecutionReport with one receipt per planned action.
    """
    report = ExecutionReport(
        operation_id=plan.operation_id,
        operation=plan.operation,
        dry_run=dry_run,
    )

    for action in plan.actions:
        if report.halted:
            report.receipts.append(Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"Not run: {report.halted_at} failed",
            ))
            continue

        receipt = registry.execute_action(action, dry_run=dry_run)
        report.receipts.append(receipt)

        if receipt.failed:
            message = f"{action.name or action.kind.value}: {receipt.error}"
            if action.best_effort:
                report.warnings.append(message)
                logger.warning("%s (continuing)", message)
            else:
                report.halted_at = action.id
                report.errors.append(message)
                logger.error("%s (halting)", message)

        # Log result
        status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.info("%s %s → %s", status_marker, action.id, receipt.status)

    return report


def build_audit_entry(
    plan: ExecutionPlan,
    report: ExecutionReport,
    **fields: Any,
) -> AuditEntry:
    """Summarize a finished run for the audit ledger.

    Extra keyword arguments (platform, install_dir, validation
    failures, context) are passed through to the entry.
    """
    return AuditEntry(
        operation_id=report.operation_id,
        operation_type=report.operation,
        target=plan.target,
        status=report.status,
        actions_total=report.total,
        actions_succeeded=report.succeeded,
        actions_failed=report.failed,
        actions_skipped=report.skipped,
        duration_ms=sum(r.duration_ms for r in report.receipts),
        warnings=list(report.warnings),
        errors=list(report.errors),
        **fields,
    )


def generate_operation_id(prefix: str = "op") -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"{prefix}-{now}-{short}"
