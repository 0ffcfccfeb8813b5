"""
DesiredConfig — what the user wants the host to look like.

Built by the setup wizard from prompts and previous config values,
then handed to the planner together with the probed HostState.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from carclaw_installer.core.models.service import ServiceUnit


class ValidationFailure(BaseModel):
    """A user-supplied credential the external API rejected."""

    service: str
    message: str


class DesiredConfig(BaseModel):
    """Target configuration for one install run."""

    repo_url: str = ""
    install_dir: str = ""

    values: dict[str, str] = Field(default_factory=dict)
    selected_services: set[str] = Field(default_factory=set)

    packages: list[str] = Field(default_factory=list)
    install_cli: bool = False           # agent target: npm-installed claude CLI
    discovery: bool = False             # publish the _carclaw._tcp record
    discovery_port: int = 3100

    unit: ServiceUnit | None = None
    recreate_service: bool = False
    start_service: bool = True
    update: bool = False                # pull + reinstall deps even when present
