"""
PlatformProfile and TargetSpec — fixed facts about where and what we install.

A PlatformProfile is chosen once at startup and passed explicitly
through the prober, planner, and adapters. A TargetSpec describes
one of the installable programs (bridge or agent daemon).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class PlatformProfile(BaseModel):
    """Host family conventions."""

    model_config = ConfigDict(frozen=True)

    os_family: Literal["macos", "debian"]
    label: str
    service_backend: Literal["launchd", "systemd"]
    package_manager: Literal["brew", "apt"]
    privilege_prefix: tuple[str, ...] = ()

    available_services: tuple[str, ...] = ("telegram", "whatsapp")
    system_packages: tuple[str, ...] = ()
    optional_packages: tuple[str, ...] = ()
    discovery_backend: Literal["avahi"] | None = None

    node_candidates: tuple[str, ...] = ()   # where a freshly installed node lands
    global_cli_install: bool = False        # try `npm install -g` for the claude CLI first
    log_dir: str = "/tmp"
    launchd_label_prefix: str = "com.congruentsys"

    def supports(self, service: str) -> bool:
        return service in self.available_services


class TargetSpec(BaseModel):
    """One installable program from the bridge repository."""

    model_config = ConfigDict(frozen=True)

    name: Literal["bridge", "agent"]
    title: str
    service_name: str
    marker_file: str                    # presence proves the repo is checked out
    entrypoint: str
    arguments: tuple[str, ...]
    config_keys: tuple[str, ...]
    log_name: str
    publishes_discovery: bool = False
    uses_messaging_services: bool = False
    needs_cli: bool = False
