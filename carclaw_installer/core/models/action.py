"""
Action and Receipt models — the execution contract.

Actions are planned steps toward the desired host state. Receipts
are the results. The planner emits Actions, the executor dispatches
them through the adapter registry, and adapters return Receipts.
Never exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from carclaw_installer.core.models.service import ServiceUnit


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionKind(str, Enum):
    """Every step the planner can emit."""

    INSTALL_RUNTIME = "install_runtime"
    INSTALL_PACKAGES = "install_packages"
    CLONE_OR_UPDATE_REPO = "clone_or_update_repo"
    INSTALL_DEPENDENCIES = "install_dependencies"
    SET_CONFIG_VALUE = "set_config_value"
    REGISTER_DISCOVERY = "register_discovery"
    REGISTER_SERVICE = "register_service"
    START_SERVICE = "start_service"
    STOP_SERVICE = "stop_service"
    REMOVE_SERVICE = "remove_service"
    REMOVE_FILES = "remove_files"
    NOOP = "noop"


# Default adapter per action kind. The planner may override it
# (e.g. npm-installed CLIs go through the node adapter).
DEFAULT_ADAPTERS: dict[ActionKind, str] = {
    ActionKind.INSTALL_RUNTIME: "packages",
    ActionKind.INSTALL_PACKAGES: "packages",
    ActionKind.CLONE_OR_UPDATE_REPO: "git",
    ActionKind.INSTALL_DEPENDENCIES: "node",
    ActionKind.SET_CONFIG_VALUE: "config",
    ActionKind.REGISTER_DISCOVERY: "discovery",
    ActionKind.REGISTER_SERVICE: "service",
    ActionKind.START_SERVICE: "service",
    ActionKind.STOP_SERVICE: "service",
    ActionKind.REMOVE_SERVICE: "service",
    ActionKind.REMOVE_FILES: "filesystem",
    ActionKind.NOOP: "noop",
}

# Config keys whose values never appear in plan output or receipts.
SECRET_KEYS = frozenset({"TELEGRAM_TOKEN", "BLUEBUBBLES_PASSWORD"})


class Action(BaseModel):
    """A planned step toward the desired host state.

    Actions are immutable once planned. ``best_effort`` actions are
    allowed to fail without halting the run.
    """

    model_config = ConfigDict(frozen=True)

    id: str                          # unique within a plan, e.g. "03:set_config_value:AGENTS"
    kind: ActionKind
    resource: str                    # host resource this action converges
    adapter: str                     # which adapter handles this
    name: str = ""                   # human-readable description
    best_effort: bool = False

    # Kind-specific payload
    key: str | None = None
    value: str | None = None
    unit: ServiceUnit | None = None
    replace: bool = False
    packages: tuple[str, ...] = ()
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.kind == ActionKind.NOOP

    @property
    def display_value(self) -> str | None:
        """The value as it may be shown to a user or written to a log."""
        if self.value is None:
            return None
        if self.key in SECRET_KEYS and self.value:
            return "********"
        return self.value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "resource": self.resource,
            "adapter": self.adapter,
            "name": self.name,
            "best_effort": self.best_effort,
        }
        if self.key is not None:
            data["key"] = self.key
            data["value"] = self.display_value
        if self.unit is not None:
            data["unit"] = self.unit.name
            data["replace"] = self.replace
        if self.packages:
            data["packages"] = list(self.packages)
        return data


class Receipt(BaseModel):
    """Result of an adapter execution.

    Receipts capture the full outcome of an action. The adapter
    NEVER raises exceptions — failures are captured here.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
