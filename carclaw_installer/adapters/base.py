"""
Adapter base — the protocol contract between the executor and the host.

The executor only touches the host through adapters. Each adapter
handles one family of action kinds (packages, git, node, config,
service, discovery, filesystem) and returns a Receipt for every
action it is given.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from carclaw_installer.core.models.action import Action, ActionKind, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    install_dir: str = "."
    dry_run: bool = False

    @property
    def working_dir(self) -> str:
        """Directory commands for this action run in (defaults to the checkout)."""
        return str(self.action.params.get("cwd") or self.install_dir)


class Adapter(ABC):
    """One binding between planned actions and a host tool.

    Subclasses set ``name`` (the value planned actions carry in
    ``Action.adapter``) and optionally ``kinds``, then implement
    ``is_available`` and ``execute``. Host failures come back as failed
    receipts; the registry still guards against anything that escapes.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'git', 'service', 'config')."""

    @property
    def kinds(self) -> frozenset[ActionKind]:
        """Action kinds this adapter accepts. Empty means any."""
        return frozenset()

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the host tool (git, npm, systemctl, ...) can be found."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Pre-flight check run before execution and during dry runs.

        Returns:
            (ok, reason); ``reason`` is empty when ok.
        """
        if self.kinds and context.action.kind not in self.kinds:
            return False, f"{self.name} adapter cannot handle '{context.action.kind.value}'"
        return True, ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Apply the action to the host and report the outcome."""

    def _ok(self, context: ExecutionContext, output: str = "", **kwargs) -> Receipt:
        return Receipt.success(self.name, context.action.id, output=output, **kwargs)

    def _fail(self, context: ExecutionContext, error: str, **kwargs) -> Receipt:
        return Receipt.failure(self.name, context.action.id, error=error, **kwargs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
