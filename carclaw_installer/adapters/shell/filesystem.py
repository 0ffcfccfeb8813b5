"""
Filesystem adapter — removes the install directory on uninstall.

Provides a receipt-returning interface for the one destructive
filesystem operation the installer performs, so the engine can
audit and dry-run it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.core.models.action import ActionKind, Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """Directory removal with receipts.

    Action params:
        path (str): Directory to remove (relative to working_dir or absolute).
    """

    @property
    def name(self) -> str:
        return "filesystem"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.REMOVE_FILES})

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        ok, error = super().validate(context)
        if not ok:
            return ok, error

        path = context.action.params.get("path", "")
        if not path:
            return False, "Missing required param: 'path'"

        target = self._resolve(context, path)
        if target in {Path("/"), Path.home().resolve()}:
            return False, f"Refusing to remove {target}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        target = self._resolve(context, context.action.params["path"])

        if not target.exists():
            return Receipt.skip(
                adapter=self.name,
                action_id=context.action.id,
                reason=f"{target} already absent",
            )

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            return self._fail(context, f"Filesystem error: {e}", metadata={"path": str(target)})

        logger.info("Removed %s", target)
        return self._ok(context, output=f"Removed {target}", metadata={"path": str(target)})

    @staticmethod
    def _resolve(context: ExecutionContext, raw_path: str) -> Path:
        target = Path(raw_path).expanduser()
        if not target.is_absolute():
            target = Path(context.working_dir) / target
        return target.resolve()
