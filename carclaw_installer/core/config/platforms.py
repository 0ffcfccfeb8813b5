"""
Platform profiles and install targets.

The two supported host families and the two installable programs,
plus ``detect_platform()`` which picks a profile once at startup.
"""

from __future__ import annotations

import logging
import platform as _platform
from pathlib import Path

from carclaw_installer.core.config.loader import ConfigError
from carclaw_installer.core.models.platform import PlatformProfile, TargetSpec

logger = logging.getLogger(__name__)


MACOS = PlatformProfile(
    os_family="macos",
    label="macOS",
    service_backend="launchd",
    package_manager="brew",
    available_services=("telegram", "whatsapp", "imessage"),
    optional_packages=("cask:bluebubbles",),
    node_candidates=("/opt/homebrew/bin/node", "/usr/local/bin/node"),
    global_cli_install=True,
)

DEBIAN = PlatformProfile(
    os_family="debian",
    label="Debian/Ubuntu",
    service_backend="systemd",
    package_manager="apt",
    privilege_prefix=("sudo",),
    available_services=("telegram", "whatsapp"),
    system_packages=(
        "git",
        "avahi-daemon",
        "avahi-utils",
        # Chromium runtime libraries for the WhatsApp Web session
        "libatk1.0-0",
        "libatk-bridge2.0-0",
        "libgtk-3-0",
        "libx11-6",
        "libxcb1",
        "libxss1",
        "libxtst6",
        "libxcomposite1",
        "libxdamage1",
        "libxrandr2",
        "libpangocairo-1.0-0",
        "libnss3",
        "libgbm1",
        "libasound2",
    ),
    discovery_backend="avahi",
    node_candidates=("/usr/bin/node", "/usr/local/bin/node"),
)

PROFILES: dict[str, PlatformProfile] = {
    "macos": MACOS,
    "debian": DEBIAN,
}


BRIDGE = TargetSpec(
    name="bridge",
    title="CarClaw Bridge",
    service_name="carclaw-bridge",
    marker_file="server.js",
    entrypoint="server.js",
    arguments=("-r", "dotenv/config", "server.js"),
    config_keys=("AGENTS",),
    log_name="carclaw-bridge.log",
    publishes_discovery=True,
    uses_messaging_services=True,
)

AGENT = TargetSpec(
    name="agent",
    title="CarClaw Agent Daemon",
    service_name="carclaw-agent",
    marker_file="agent-daemon.js",
    entrypoint="agent-daemon.js",
    arguments=("agent-daemon.js",),
    config_keys=("BRIDGE_URL", "MACHINE_NAME", "PROJECT_DIR", "CLAUDE_BIN", "CLAUDECODE"),
    log_name="carclaw-agent.log",
    needs_cli=True,
)

TARGETS: dict[str, TargetSpec] = {
    "bridge": BRIDGE,
    "agent": AGENT,
}


def get_target(name: str) -> TargetSpec:
    try:
        return TARGETS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown install target '{name}'. Valid: {', '.join(sorted(TARGETS))}"
        ) from None


def detect_platform(
    system: str | None = None,
    debian_marker: Path = Path("/etc/debian_version"),
) -> PlatformProfile:
    """Pick the profile for the running host.

    Args:
        system: Override for ``platform.system()`` (tests).
        debian_marker: File whose presence identifies a Debian family host.

    Raises:
        ConfigError: On any host that is neither macOS nor Debian-based.
    """
    system = system or _platform.system()

    if system == "Darwin":
        return MACOS
    if system == "Linux" and debian_marker.exists():
        return DEBIAN

    raise ConfigError(
        f"Unsupported platform: {system}. "
        "CarClaw installs on macOS and Debian/Ubuntu only."
    )
