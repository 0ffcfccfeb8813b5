"""
Test doubles — a mock adapter and a recording command runner.

``MockAdapter`` stands in for any adapter in mock mode or in engine
tests. ``RecordingRunner`` stands in for the CommandRunner: it records
every command and answers with scripted results, so probes, adapters,
and registrars can be exercised without touching the host.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.shell.command import CommandResult, CommandRunner
from carclaw_installer.core.models.action import ActionKind, Receipt


class MockAdapter(Adapter):
    """Stand-in adapter that records actions instead of touching the host.

    Every action succeeds unless scripted otherwise, either per action
    id (``set_response``, ``set_failure``) or per kind (``fail_kind``).
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._failing_kinds: dict[ActionKind, str] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """Contexts received, in execution order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def executed_kinds(self) -> list[ActionKind]:
        return [ctx.action.kind for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Answer ``action_id`` with ``receipt``."""
        self._responses[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Fail the action with this id."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def fail_kind(self, kind: ActionKind, error: str = "Mock failure") -> None:
        """Configure every action of ``kind`` to fail."""
        self._failing_kinds[kind] = error

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        action = context.action

        if action.id in self._responses:
            return self._responses[action.id]
        if action.kind in self._failing_kinds:
            return Receipt.failure(
                adapter=self._name,
                action_id=action.id,
                error=self._failing_kinds[action.kind],
            )

        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Forget recorded calls and scripted outcomes."""
        self._call_log.clear()
        self._responses.clear()
        self._failing_kinds.clear()


# ═══════════════════════════════════════════════════════════════════
#  Recording runner
# ═══════════════════════════════════════════════════════════════════


@dataclass
class RecordedCall:
    """One command as the code under test asked for it."""

    args: list[str]
    privileged: bool = False
    cwd: str | None = None
    input_text: str | None = None

    @property
    def command(self) -> str:
        return " ".join(self.args)


Responder = Callable[[RecordedCall], CommandResult]


@dataclass
class _Rule:
    matcher: Callable[[RecordedCall], bool]
    respond: Responder
    specificity: int = 0
    order: int = 0


@dataclass
class RecordingRunner(CommandRunner):
    """Scriptable CommandRunner.

    Unmatched commands succeed with empty output. Rules registered
    with ``on`` match on an argv prefix; the longest matching prefix
    wins, later registrations break ties.
    """

    binaries: dict[str, str] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    _rules: list[_Rule] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__()

    # ── Scripting ───────────────────────────────────────────────

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        handler: Responder | None = None,
    ) -> None:
        """Answer commands whose argv starts with ``prefix``."""
        wanted = list(prefix)

        def matcher(call: RecordedCall) -> bool:
            return call.args[: len(wanted)] == wanted

        def fixed(call: RecordedCall) -> CommandResult:
            return CommandResult(args=call.args, returncode=returncode,
                                 stdout=stdout, stderr=stderr)

        self._rules.append(_Rule(matcher, handler or fixed, len(wanted), len(self._rules)))

    def on_shell(self, fragment: str, returncode: int = 0, handler: Responder | None = None) -> None:
        """Answer ``run_shell`` pipelines containing ``fragment``."""

        def matcher(call: RecordedCall) -> bool:
            return call.args[:2] == ["sh", "-c"] and fragment in call.args[2]

        def fixed(call: RecordedCall) -> CommandResult:
            return CommandResult(args=call.args, returncode=returncode)

        self._rules.append(_Rule(matcher, handler or fixed, 3, len(self._rules)))

    # ── CommandRunner interface ─────────────────────────────────

    def which(self, name: str) -> str | None:
        return self.binaries.get(name)

    def path_exists(self, path: Path | str) -> bool:
        return Path(path).exists()

    def run(self, args, *, cwd=None, input_text=None, privileged=False, timeout=None, env=None):
        call = RecordedCall(list(args), privileged, str(cwd) if cwd else None, input_text)
        return self._respond(call)

    def run_shell(self, command, *, cwd=None, privileged=False, timeout=None):
        call = RecordedCall(["sh", "-c", command], privileged, str(cwd) if cwd else None)
        return self._respond(call)

    # ── Inspection ──────────────────────────────────────────────

    def commands(self) -> list[str]:
        return [c.command for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        wanted = list(prefix)
        return any(c.args[: len(wanted)] == wanted for c in self.calls)

    def calls_to(self, *prefix: str) -> list[RecordedCall]:
        wanted = list(prefix)
        return [c for c in self.calls if c.args[: len(wanted)] == wanted]

    def reset_calls(self) -> None:
        self.calls.clear()

    def _respond(self, call: RecordedCall) -> CommandResult:
        self.calls.append(call)
        matching = [r for r in self._rules if r.matcher(call)]
        if not matching:
            return CommandResult(args=call.args)
        best = max(matching, key=lambda r: (r.specificity, r.order))
        return best.respond(call)
