"""
Discovery adapter — advertises the bridge on the LAN through Avahi.

Writes an Avahi static service file announcing ``_carclaw._tcp`` so
the CarClaw app can find the bridge by Bonjour/mDNS. Debian only;
macOS bridges advertise themselves.
"""

from __future__ import annotations

import logging
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.action import ActionKind, Receipt

logger = logging.getLogger(__name__)

AVAHI_SERVICES_DIR = Path("/etc/avahi/services")
SERVICE_TYPE = "_carclaw._tcp"

_TEMPLATE = """\
<?xml version="1.0" standalone='no'?>
<!DOCTYPE service-group SYSTEM "avahi-service.dtd">
<service-group>
  <name replace-wildcards="yes">{title} (%h)</name>
  <service>
    <type>{service_type}</type>
    <port>{port}</port>
    <txt-record>version=1</txt-record>
  </service>
</service-group>
"""


def render_service_file(port: int, title: str = "CarClaw Bridge") -> str:
    return _TEMPLATE.format(title=title, service_type=SERVICE_TYPE, port=port)


def discovery_file(name: str, services_dir: Path = AVAHI_SERVICES_DIR) -> Path:
    return services_dir / f"{name}.service"


class AvahiDiscoveryAdapter(Adapter):
    """Registers the bridge's mDNS record.

    Action params:
        name (str): Service file stem (default ``carclaw-bridge``).
        port (int): Advertised port (default 3100).
    """

    def __init__(self, runner: CommandRunner, services_dir: Path = AVAHI_SERVICES_DIR):
        self._runner = runner
        self._services_dir = services_dir

    @property
    def name(self) -> str:
        return "discovery"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.REGISTER_DISCOVERY})

    def is_available(self) -> bool:
        return self._runner.which("avahi-daemon") is not None

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        path = discovery_file(params.get("name", "carclaw-bridge"), self._services_dir)
        port = int(params.get("port", 3100))

        if self._runner.path_exists(path):
            return Receipt.skip(
                adapter=self.name,
                action_id=context.action.id,
                reason=f"Discovery record already registered at {path}",
            )

        self._ensure_daemon()

        written = self._runner.run(
            ["tee", str(path)],
            input_text=render_service_file(port),
            privileged=True,
        )
        if not written.ok:
            return self._fail(context, f"Could not write {path}: {written.error_text}")

        restarted = self._runner.run(["systemctl", "restart", "avahi-daemon"], privileged=True)
        if not restarted.ok:
            return self._fail(context, f"avahi-daemon restart failed: {restarted.error_text}")

        logger.info("Registered %s on port %d", SERVICE_TYPE, port)
        return self._ok(
            context,
            output=f"Bonjour service registered ({SERVICE_TYPE})",
            metadata={"path": str(path), "port": port},
        )

    def _ensure_daemon(self) -> None:
        if self._runner.run(["systemctl", "is-active", "--quiet", "avahi-daemon"]).ok:
            return
        logger.info("Starting avahi-daemon")
        for verb in ("enable", "start"):
            result = self._runner.run(["systemctl", verb, "avahi-daemon"], privileged=True)
            if not result.ok:
                logger.warning("systemctl %s avahi-daemon: %s", verb, result.error_text)
