"""
Config adapter — writes keys into the bridge's .env file.

Each set_config_value action is one idempotent upsert through the
EnvStore. Values for secret keys never appear in receipts.
"""

from __future__ import annotations

import logging

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.core.models.action import ActionKind, Receipt
from carclaw_installer.core.persistence.env_file import ConfigStoreError, EnvStore

logger = logging.getLogger(__name__)


class ConfigAdapter(Adapter):
    """KEY=value upserts into the Config Store."""

    def __init__(self, store: EnvStore):
        self._store = store

    @property
    def name(self) -> str:
        return "config"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.SET_CONFIG_VALUE})

    @property
    def store(self) -> EnvStore:
        return self._store

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        ok, error = super().validate(context)
        if not ok:
            return ok, error
        if not context.action.key:
            return False, "set_config_value needs a key"
        if context.action.value is None:
            return False, f"set_config_value for {context.action.key} has no value"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        try:
            changed = self._store.set(action.key, action.value)
        except (ConfigStoreError, OSError) as e:
            return self._fail(context, f"Could not write {action.key}: {e}")

        logger.debug("Config %s=%s (%s)", action.key, action.display_value,
                     "changed" if changed else "unchanged")
        return self._ok(
            context,
            output=f"{action.key}={action.display_value}",
            metadata={"key": action.key, "changed": changed},
        )
