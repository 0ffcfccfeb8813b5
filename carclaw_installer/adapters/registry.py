"""
Adapter registry — routes each planned action to the adapter that owns it.

Actions name their adapter (``packages``, ``git``, ``node``, ``config``,
``service``, ``discovery``, ``filesystem``). The executor hands every
action to ``execute_action`` and always gets a Receipt back, whether
the adapter succeeded, refused the action, or blew up.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter table plus the dispatch rules around it.

    In mock mode nothing touches the host: actions go to the supplied
    mock adapter, or succeed with a ``[mock]`` receipt when none is set.
    """

    def __init__(self, mock_mode: bool = False, install_dir: str = "."):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None
        self._install_dir = install_dir

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    # ── Table ────────────────────────────────────────────────────

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing %s adapter", adapter.name)
        self._adapters[adapter.name] = adapter
        logger.debug("Registered %r", adapter)

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Which host tools are usable, keyed by adapter name."""
        return {
            name: {
                "name": name,
                "available": self._probe_available(adapter),
                "type": type(adapter).__name__,
            }
            for name, adapter in self._adapters.items()
        }

    @staticmethod
    def _probe_available(adapter: Adapter) -> bool:
        try:
            return bool(adapter.is_available())
        except Exception as e:
            logger.debug("%s availability check raised: %s", adapter.name, e)
            return False

    # ── Dispatch ─────────────────────────────────────────────────

    def execute_action(self, action: Action, dry_run: bool = False) -> Receipt:
        """Run one action and return its Receipt. Never raises.

        Noop actions resolve to a skip without an adapter. Real actions
        are validated first, so a dry run still reports actions no
        adapter could carry out.
        """
        if action.is_noop:
            return Receipt.skip(
                adapter="noop",
                action_id=action.id,
                reason=action.name or f"{action.resource} already satisfied",
            )

        if self._mock_mode and self._mock_adapter is None:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.kind.value} ({action.resource})",
                metadata={"mock": True, "dry_run": dry_run},
            )

        adapter = self._mock_adapter if self._mock_mode else self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No '{action.adapter}' adapter for {action.kind.value}",
            )

        context = ExecutionContext(action=action, install_dir=self._install_dir, dry_run=dry_run)
        started = time.monotonic()

        try:
            ok, reason = adapter.validate(context)
        except Exception as e:
            logger.error("%s rejected %s while validating: %s", adapter.name, action.id, e)
            return Receipt.failure(action.adapter, action.id, error=f"Validation error: {e}")
        if not ok:
            return Receipt.failure(action.adapter, action.id, error=f"Validation failed: {reason}")

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would {action.name or action.kind.value}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("%s raised on %s: %s", adapter.name, action.id, e)
            receipt = Receipt.failure(action.adapter, action.id, error=f"Unexpected error: {e}")

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt
