"""Adapters — tool bindings for the host.

Public re-exports for convenient access.
"""

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.mock import MockAdapter, RecordingRunner
from carclaw_installer.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "RecordingRunner",
]
