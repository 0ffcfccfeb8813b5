"""
ServiceUnit — backend-neutral description of a background service.

Registrars translate a ServiceUnit into a systemd unit file or a
launchd property list. The descriptor itself knows nothing about
either format.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RestartPolicy(BaseModel):
    """When and how quickly the service manager restarts the process."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["on-failure", "always", "no"] = "on-failure"
    delay_seconds: int = 5


class ServiceUnit(BaseModel):
    """A background service as the installer wants it registered."""

    model_config = ConfigDict(frozen=True)

    name: str                            # e.g. "carclaw-bridge"
    description: str = ""
    executable_path: str                 # absolute path to the runtime binary
    arguments: tuple[str, ...] = ()
    working_dir: str
    env_vars: dict[str, str] = Field(default_factory=dict)
    restart_policy: RestartPolicy = Field(default_factory=RestartPolicy)
    log_path: str | None = None          # None = service manager's own log (journal)
    user: str | None = None
    after: tuple[str, ...] = ("network.target",)

    @property
    def command_line(self) -> list[str]:
        """Executable followed by its arguments."""
        return [self.executable_path, *self.arguments]
