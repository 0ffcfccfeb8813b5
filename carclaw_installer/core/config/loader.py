"""
Configuration loader — reads installer settings into a typed model.

Settings have sensible defaults for every field, so the YAML file is
optional. Lookup order for the file:

    --config flag  >  CARCLAW_CONFIG env var  >  ./carclaw.yml

Environment variables carried over from the shell installers
(``BRIDGE_DIR``, ``BLUEBUBBLES_URL``) override whatever the file says.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Default config filename
SETTINGS_FILE = "carclaw.yml"

BRIDGE_REPO = "https://github.com/hankh95/carclaw-bridge.git"


class ConfigError(Exception):
    """Raised when installer settings are invalid or unreadable."""


class InstallerSettings(BaseModel):
    """Every tunable the installer reads."""

    repo_url: str = BRIDGE_REPO
    install_dir: Path = Field(default_factory=lambda: Path.home() / "carclaw-bridge")
    target: Literal["bridge", "agent"] = "bridge"

    min_node_major: int = 18
    node_channel: int = 20               # NodeSource major version on Debian
    bridge_port: int = 3100

    bluebubbles_url: str = "http://localhost:1234"
    telegram_api: str = "https://api.telegram.org"
    http_timeout: int = 10

    default_agents: str = "Mini, M5, DGX, Copilot"
    default_bridge_url: str = "ws://m5.local:3100"
    default_project_dir: str = "~/Projects/carclaw"

    command_timeout: int = 900           # per external command, in seconds
    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "carclaw-installer"
    )

    @field_validator("install_dir", "state_dir", mode="before")
    @classmethod
    def _expand(cls, value: object) -> object:
        if isinstance(value, str):
            return Path(value).expanduser()
        if isinstance(value, Path):
            return value.expanduser()
        return value

    @property
    def env_file(self) -> Path:
        """The bridge's .env file (the Config Store document)."""
        return self.install_dir / ".env"

    @property
    def env_template(self) -> Path:
        return self.install_dir / ".env.example"

    @property
    def audit_path(self) -> Path:
        return self.state_dir / "audit.ndjson"


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Locate the settings file without walking the filesystem.

    Args:
        start_dir: Directory to look in (default: cwd).

    Returns:
        Path to the settings file, or None if there is none.
    """
    env_path = os.environ.get("CARCLAW_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    candidate = (start_dir or Path.cwd()) / SETTINGS_FILE
    if candidate.is_file():
        return candidate
    return None


def load_settings(
    path: Path | None = None,
    overrides: dict[str, object] | None = None,
) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit settings file. If None, uses ``find_settings_file``.
        overrides: Values that win over both file and environment
            (typically CLI options).

    Returns:
        Validated InstallerSettings.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_settings_file()

    data: dict[str, object] = {}
    if path is not None:
        if not path.is_file():
            if explicit or os.environ.get("CARCLAW_CONFIG"):
                raise ConfigError(f"Settings file not found: {path}")
        else:
            data = _read_yaml(path)

    if os.environ.get("BRIDGE_DIR"):
        data["install_dir"] = os.environ["BRIDGE_DIR"]
    if os.environ.get("BLUEBUBBLES_URL"):
        data["bluebubbles_url"] = os.environ["BLUEBUBBLES_URL"]

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        settings = InstallerSettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid installer settings: {e}") from e

    logger.debug("Settings: target=%s install_dir=%s", settings.target, settings.install_dir)
    return settings


def _read_yaml(path: Path) -> dict[str, object]:
    logger.debug("Loading installer settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "installer" key or be flat
    if isinstance(data.get("installer"), dict):
        data = data["installer"]

    return dict(data)
