"""
Service adapter — lifecycle actions through a ServiceRegistrar.

Registering a unit that already exists is a no-op unless the action
asks to replace it. The unit is planned before node is installed, so
its executable is resolved again at registration time. Registrar errors
become failed receipts.
"""

from __future__ import annotations

import logging

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.languages.node import resolve_node
from carclaw_installer.adapters.services.base import RegistrarError, ServiceRegistrar
from carclaw_installer.core.models.action import ActionKind, Receipt
from carclaw_installer.core.models.platform import PlatformProfile
from carclaw_installer.core.models.service import ServiceUnit

logger = logging.getLogger(__name__)


class ServiceAdapter(Adapter):
    """register / start / stop / remove for one service backend.

    Action params:
        service (str): Service name, when the action carries no unit.

    With a ``profile``, registration points the unit at the node binary
    actually on the host and refuses to register when there is none.
    """

    def __init__(self, registrar: ServiceRegistrar, profile: PlatformProfile | None = None):
        self._registrar = registrar
        self._profile = profile

    @property
    def name(self) -> str:
        return "service"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({
            ActionKind.REGISTER_SERVICE,
            ActionKind.START_SERVICE,
            ActionKind.STOP_SERVICE,
            ActionKind.REMOVE_SERVICE,
        })

    @property
    def registrar(self) -> ServiceRegistrar:
        return self._registrar

    def is_available(self) -> bool:
        tool = "systemctl" if self._registrar.backend == "systemd" else "launchctl"
        return self._registrar.runner.which(tool) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        ok, error = super().validate(context)
        if not ok:
            return ok, error
        action = context.action
        if action.kind == ActionKind.REGISTER_SERVICE and action.unit is None:
            return False, "register_service needs a service unit"
        if not self._service_name(context):
            return False, "Missing service name"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        kind = context.action.kind
        name = self._service_name(context)
        meta = {"service": name, "backend": self._registrar.backend}

        try:
            if kind == ActionKind.REGISTER_SERVICE:
                return self._register(context)
            if kind == ActionKind.START_SERVICE:
                self._registrar.start(name)
                return self._ok(context, output=f"Started {name}", metadata=meta)
            if kind == ActionKind.STOP_SERVICE:
                self._registrar.stop(name)
                return self._ok(context, output=f"Stopped {name}", metadata=meta)
            self._registrar.remove(name)
            return self._ok(context, output=f"Removed {name}", metadata=meta)
        except RegistrarError as e:
            return self._fail(context, str(e), metadata=meta)

    def _register(self, ctx: ExecutionContext) -> Receipt:
        unit = ctx.action.unit
        path = self._registrar.unit_path(unit.name)

        if self._registrar.is_registered(unit.name) and not ctx.action.replace:
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"{unit.name} already registered at {path}",
            )

        unit = self._with_installed_node(unit)
        if unit is None:
            return self._fail(ctx, f"node not found on this host; cannot register {ctx.action.unit.name}")

        self._registrar.create(unit)
        return self._ok(
            ctx,
            output=f"Registered {unit.name} at {path}",
            metadata={
                "service": unit.name,
                "path": str(path),
                "executable": unit.executable_path,
                "replaced": ctx.action.replace,
            },
        )

    def _with_installed_node(self, unit: ServiceUnit) -> ServiceUnit | None:
        if self._profile is None:
            return unit
        node = resolve_node(self._registrar.runner, self._profile)
        if node is None:
            return None
        if node != unit.executable_path:
            logger.info("Service %s will run %s (planned %s)", unit.name, node, unit.executable_path)
            return unit.model_copy(update={"executable_path": node})
        return unit

    @staticmethod
    def _service_name(ctx: ExecutionContext) -> str:
        if ctx.action.unit is not None:
            return ctx.action.unit.name
        return str(ctx.action.params.get("service", ""))
