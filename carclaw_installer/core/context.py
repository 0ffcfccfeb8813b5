"""
Install context — everything one run needs, built once at startup.

The context bundles settings, the platform profile, the target, and
the collaborators that touch the host (command runner, service
registrar, config store, credential validator). Use cases receive a
context instead of reaching for globals, so tests can build one over
a temporary directory and a RecordingRunner.
"""

from __future__ import annotations

import getpass
import logging
import socket
from dataclasses import dataclass, field
from pathlib import Path

from carclaw_installer.adapters.config.dotenv import ConfigAdapter
from carclaw_installer.adapters.discovery.avahi import AVAHI_SERVICES_DIR, AvahiDiscoveryAdapter
from carclaw_installer.adapters.languages.node import NodeAdapter
from carclaw_installer.adapters.registry import AdapterRegistry
from carclaw_installer.adapters.services import ServiceAdapter, ServiceRegistrar, get_registrar
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.adapters.shell.filesystem import FilesystemAdapter
from carclaw_installer.adapters.system.packages import PackageAdapter
from carclaw_installer.adapters.vcs.git import GitAdapter
from carclaw_installer.core.config.loader import InstallerSettings
from carclaw_installer.core.config.platforms import detect_platform, get_target
from carclaw_installer.core.models.platform import PlatformProfile, TargetSpec
from carclaw_installer.core.persistence.audit import AuditWriter
from carclaw_installer.core.persistence.env_file import EnvStore
from carclaw_installer.core.services.credentials import CredentialValidator

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    """One run's settings and host collaborators."""

    settings: InstallerSettings
    profile: PlatformProfile
    target: TargetSpec
    runner: CommandRunner
    registrar: ServiceRegistrar
    store: EnvStore
    validator: CredentialValidator
    discovery_dir: Path = AVAHI_SERVICES_DIR
    hostname: str = field(default_factory=socket.gethostname)
    user: str = field(default_factory=getpass.getuser)

    @property
    def install_dir(self) -> Path:
        return self.settings.install_dir

    @property
    def audit(self) -> AuditWriter:
        return AuditWriter(self.settings.audit_path)


def build_context(
    settings: InstallerSettings,
    *,
    profile: PlatformProfile | None = None,
    runner: CommandRunner | None = None,
    unit_dir: Path | None = None,
    discovery_dir: Path | None = None,
    validator: CredentialValidator | None = None,
) -> InstallContext:
    """Assemble an InstallContext; every collaborator can be overridden.

    Raises:
        ConfigError: If the host platform is unsupported.
    """
    profile = profile or detect_platform()
    runner = runner or CommandRunner(profile.privilege_prefix, timeout=settings.command_timeout)

    ctx = InstallContext(
        settings=settings,
        profile=profile,
        target=get_target(settings.target),
        runner=runner,
        registrar=get_registrar(profile, runner, unit_dir=unit_dir),
        store=EnvStore(settings.env_file, template=settings.env_template),
        validator=validator or CredentialValidator(settings.telegram_api, settings.http_timeout),
        discovery_dir=discovery_dir or AVAHI_SERVICES_DIR,
    )
    logger.debug(
        "Context: platform=%s target=%s install_dir=%s",
        profile.os_family, ctx.target.name, ctx.install_dir,
    )
    return ctx


def build_registry(ctx: InstallContext, mock: bool = False) -> AdapterRegistry:
    """Registry with every adapter the planner can name."""
    registry = AdapterRegistry(mock_mode=mock, install_dir=str(ctx.install_dir))
    registry.register(PackageAdapter(
        ctx.runner,
        ctx.profile,
        node_channel=ctx.settings.node_channel,
        min_node_major=ctx.settings.min_node_major,
    ))
    registry.register(GitAdapter(ctx.runner))
    registry.register(NodeAdapter(ctx.runner, ctx.profile))
    registry.register(ConfigAdapter(ctx.store))
    registry.register(ServiceAdapter(ctx.registrar, ctx.profile))
    registry.register(AvahiDiscoveryAdapter(ctx.runner, ctx.discovery_dir))
    registry.register(FilesystemAdapter())
    return registry
