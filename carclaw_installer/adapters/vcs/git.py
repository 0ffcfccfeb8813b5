"""
Git adapter — bridge repository checkout.

Clones the bridge repository into the install directory, or
fast-forwards an existing checkout. Uses the git CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.action import ActionKind, Receipt

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Clone-or-update for the bridge checkout.

    Action params:
        repo_url (str): Remote to clone from.
        dest (str): Checkout directory (default: install dir).
        marker (str): File that proves ``dest`` is a checkout.
    """

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return "git"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.CLONE_OR_UPDATE_REPO})

    def is_available(self) -> bool:
        return self._runner.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        ok, error = super().validate(context)
        if not ok:
            return ok, error
        if not context.action.params.get("repo_url"):
            return False, "Missing required param: 'repo_url'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        dest = Path(context.action.params.get("dest") or context.install_dir)
        marker = context.action.params.get("marker", "")

        if dest.is_dir() and (not marker or (dest / marker).exists()):
            return self._pull(context, dest)
        return self._clone(context, dest)

    # ── Operations ──────────────────────────────────────────────

    def _clone(self, ctx: ExecutionContext, dest: Path) -> Receipt:
        repo_url = ctx.action.params["repo_url"]

        if dest.exists() and any(dest.iterdir()):
            return self._fail(
                ctx,
                f"{dest} exists but is not a bridge checkout; move it aside or set BRIDGE_DIR",
            )

        logger.info("Cloning %s into %s", repo_url, dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        result = self._runner.run(["git", "clone", repo_url, str(dest)])
        if not result.ok:
            return self._fail(ctx, f"git clone failed: {result.error_text}")

        return self._ok(ctx, output=f"Cloned into {dest}", metadata={"operation": "clone"})

    def _pull(self, ctx: ExecutionContext, dest: Path) -> Receipt:
        logger.info("Pulling latest into %s", dest)
        result = self._runner.run(["git", "-C", str(dest), "pull", "--ff-only"])
        if not result.ok:
            return self._fail(
                ctx,
                f"Could not fast-forward (local changes?): {result.error_text}",
                metadata={"operation": "pull"},
            )
        return self._ok(ctx, output=result.stdout.strip(), metadata={"operation": "pull"})
