"""Language adapters — node."""

from carclaw_installer.adapters.languages.node import NodeAdapter

__all__ = ["NodeAdapter"]
