"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from carclaw_installer.core.models import Action, HostState, DesiredConfig
"""

from carclaw_installer.core.models.action import (
    Action,
    ActionKind,
    DEFAULT_ADAPTERS,
    Receipt,
    SECRET_KEYS,
)
from carclaw_installer.core.models.desired import DesiredConfig, ValidationFailure
from carclaw_installer.core.models.platform import PlatformProfile, TargetSpec
from carclaw_installer.core.models.service import RestartPolicy, ServiceUnit
from carclaw_installer.core.models.state import (
    HostState,
    ResourceState,
    ResourceStatus,
    ServiceState,
)

__all__ = [
    # action.py
    "Action",
    "ActionKind",
    "DEFAULT_ADAPTERS",
    "Receipt",
    "SECRET_KEYS",
    # desired.py
    "DesiredConfig",
    "ValidationFailure",
    # platform.py
    "PlatformProfile",
    "TargetSpec",
    # service.py
    "RestartPolicy",
    "ServiceUnit",
    # state.py
    "HostState",
    "ResourceState",
    "ResourceStatus",
    "ServiceState",
]
