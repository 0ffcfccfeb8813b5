"""
systemd registrar (Debian/Ubuntu).

Unit files go to ``/etc/systemd/system/<name>.service`` through
``sudo tee``; everything else is ``systemctl``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from carclaw_installer.adapters.services.base import ServiceRegistrar, ServiceStatus
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.service import ServiceUnit

logger = logging.getLogger(__name__)

SYSTEMD_UNIT_DIR = Path("/etc/systemd/system")

_RUNNING = {"active", "activating", "reloading"}
_STOPPED = {"inactive", "failed", "deactivating"}


class SystemdRegistrar(ServiceRegistrar):
    backend = "systemd"

    def __init__(self, runner: CommandRunner, unit_dir: Path = SYSTEMD_UNIT_DIR):
        super().__init__(runner)
        self._unit_dir = unit_dir

    def unit_path(self, name: str) -> Path:
        return self._unit_dir / f"{name}.service"

    def render(self, unit: ServiceUnit) -> str:
        lines = [
            "[Unit]",
            f"Description={unit.description or unit.name}",
        ]
        if unit.after:
            lines.append(f"After={' '.join(unit.after)}")

        lines += ["", "[Service]", "Type=simple"]
        if unit.user:
            lines.append(f"User={unit.user}")
        lines += [
            f"WorkingDirectory={unit.working_dir}",
            f"ExecStart={' '.join(unit.command_line)}",
            f"Restart={unit.restart_policy.mode}",
            f"RestartSec={unit.restart_policy.delay_seconds}",
        ]
        for key, value in unit.env_vars.items():
            lines.append(f"Environment={key}={value}")

        if unit.log_path:
            lines += [
                f"StandardOutput=append:{unit.log_path}",
                f"StandardError=append:{unit.log_path}",
            ]
        else:
            lines += ["StandardOutput=journal", "StandardError=journal"]

        lines += ["", "[Install]", "WantedBy=multi-user.target", ""]
        return "\n".join(lines)

    def create(self, unit: ServiceUnit) -> None:
        path = self.unit_path(unit.name)
        self._require(
            self._runner.run(["tee", str(path)], input_text=self.render(unit), privileged=True),
            f"Writing {path}",
        )
        self._systemctl("daemon-reload")
        self._systemctl("enable", unit.name)
        logger.info("Registered systemd unit %s", unit.name)

    def remove(self, name: str) -> None:
        disabled = self._runner.run(["systemctl", "disable", name], privileged=True)
        if not disabled.ok:
            logger.debug("systemctl disable %s: %s", name, disabled.error_text)
        self._require(
            self._runner.run(["rm", "-f", str(self.unit_path(name))], privileged=True),
            f"Removing {self.unit_path(name)}",
        )
        self._systemctl("daemon-reload")
        logger.info("Removed systemd unit %s", name)

    def start(self, name: str) -> None:
        self._systemctl("start", name)

    def stop(self, name: str) -> None:
        self._systemctl("stop", name)

    def status(self, name: str) -> ServiceStatus:
        result = self._runner.run(["systemctl", "is-active", name], timeout=15)
        state = result.stdout.strip()
        if state in _RUNNING:
            return ServiceStatus.RUNNING
        if state in _STOPPED:
            return ServiceStatus.STOPPED
        return ServiceStatus.UNKNOWN

    def describe_commands(self, name: str) -> dict[str, str]:
        return {
            "start": f"sudo systemctl start {name}",
            "stop": f"sudo systemctl stop {name}",
            "status": f"systemctl status {name}",
            "logs": f"journalctl -u {name} -f",
        }

    def _systemctl(self, *args: str) -> None:
        self._require(
            self._runner.run(["systemctl", *args], privileged=True),
            f"systemctl {' '.join(args)}",
        )
