"""
launchd registrar (macOS).

Services are per-user LaunchAgents: a property list at
``~/Library/LaunchAgents/<label>.plist`` loaded with ``launchctl``.
Labels are ``<prefix>.<name>``, e.g. ``com.congruentsys.carclaw-bridge``.
"""

from __future__ import annotations

import logging
import plistlib
from pathlib import Path
from typing import Any

from carclaw_installer.adapters.services.base import (
    RegistrarError,
    ServiceRegistrar,
    ServiceStatus,
)
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.service import ServiceUnit

logger = logging.getLogger(__name__)


class LaunchdRegistrar(ServiceRegistrar):
    backend = "launchd"

    def __init__(
        self,
        runner: CommandRunner,
        agents_dir: Path | None = None,
        label_prefix: str = "com.congruentsys",
    ):
        super().__init__(runner)
        self._agents_dir = agents_dir or Path.home() / "Library" / "LaunchAgents"
        self._label_prefix = label_prefix

    def label(self, name: str) -> str:
        return f"{self._label_prefix}.{name}"

    def unit_path(self, name: str) -> Path:
        return self._agents_dir / f"{self.label(name)}.plist"

    def plist(self, unit: ServiceUnit) -> dict[str, Any]:
        """The property list as a dict, in launchd key order."""
        data: dict[str, Any] = {
            "Label": self.label(unit.name),
            "ProgramArguments": unit.command_line,
            "WorkingDirectory": unit.working_dir,
        }
        if unit.env_vars:
            data["EnvironmentVariables"] = dict(unit.env_vars)

        data["RunAtLoad"] = True
        policy = unit.restart_policy
        if policy.mode == "always":
            data["KeepAlive"] = True
        elif policy.mode == "on-failure":
            data["KeepAlive"] = {"SuccessfulExit": False}
        if policy.mode != "no":
            data["ThrottleInterval"] = policy.delay_seconds

        if unit.log_path:
            data["StandardOutPath"] = unit.log_path
            data["StandardErrorPath"] = unit.log_path
        return data

    def render(self, unit: ServiceUnit) -> str:
        return plistlib.dumps(self.plist(unit), fmt=plistlib.FMT_XML, sort_keys=False).decode("utf-8")

    def create(self, unit: ServiceUnit) -> None:
        path = self.unit_path(unit.name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.render(unit), encoding="utf-8")
        except OSError as e:
            raise RegistrarError(f"Writing {path} failed: {e}") from e
        logger.info("Wrote launchd plist %s", path)

    def remove(self, name: str) -> None:
        path = self.unit_path(name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise RegistrarError(f"Removing {path} failed: {e}") from e
        logger.info("Removed launchd plist %s", path)

    def start(self, name: str) -> None:
        self._require(
            self._runner.run(["launchctl", "load", "-w", str(self.unit_path(name))]),
            f"launchctl load {self.label(name)}",
        )

    def stop(self, name: str) -> None:
        self._require(
            self._runner.run(["launchctl", "unload", str(self.unit_path(name))]),
            f"launchctl unload {self.label(name)}",
        )

    def status(self, name: str) -> ServiceStatus:
        result = self._runner.run(["launchctl", "list"], timeout=15)
        if not result.ok:
            return ServiceStatus.UNKNOWN

        label = self.label(name)
        for line in result.stdout.splitlines():
            # PID  Status  Label
            fields = line.split()
            if len(fields) >= 3 and fields[-1] == label:
                return ServiceStatus.STOPPED if fields[0] == "-" else ServiceStatus.RUNNING
        return ServiceStatus.STOPPED

    def describe_commands(self, name: str) -> dict[str, str]:
        path = self.unit_path(name)
        log = f"/tmp/{name}.log"
        return {
            "start": f"launchctl load {path}",
            "stop": f"launchctl unload {path}",
            "status": f"launchctl list | grep {name}",
            "logs": f"tail -f {log}",
        }
