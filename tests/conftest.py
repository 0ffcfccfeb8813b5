"""
Shared test fixtures and configuration.

``FakeHost`` scripts a RecordingRunner so that commands have the
effects the real tools would have (cloning creates the checkout,
``npm install`` creates node_modules, ``tee`` writes files, service
managers track what is running). Everything lives under tmp_path.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from carclaw_installer.adapters.mock import RecordedCall, RecordingRunner
from carclaw_installer.adapters.shell.command import CommandResult
from carclaw_installer.core.config.loader import InstallerSettings
from carclaw_installer.core.config.platforms import DEBIAN, MACOS
from carclaw_installer.core.context import InstallContext, build_context
from carclaw_installer.core.models.platform import PlatformProfile
from carclaw_installer.core.services.credentials import CredentialCheck, CredentialValidator

GOOD_TOKEN = "123456:good-token"
GOOD_PASSWORD = "bb-secret"


class FakeValidator(CredentialValidator):
    """Accepts GOOD_TOKEN and GOOD_PASSWORD; never touches the network."""

    def __init__(self):
        super().__init__()
        self.checked: list[str] = []

    def validate_telegram_token(self, token: str) -> CredentialCheck:
        self.checked.append("telegram")
        if token == GOOD_TOKEN:
            return CredentialCheck(True, "Token valid — bot: @carclaw_bot", identity="carclaw_bot")
        return CredentialCheck(False, "Unauthorized")

    def validate_bluebubbles(self, url: str, password: str) -> CredentialCheck:
        self.checked.append("imessage")
        if password == GOOD_PASSWORD:
            return CredentialCheck(True, "BlueBubbles connection successful")
        return CredentialCheck(False, "Invalid password")


class FakeHost:
    """A simulated machine behind a RecordingRunner."""

    def __init__(self, root: Path, family: str = "debian"):
        self.root = root
        self.family = family
        self.bin_dir = root / "bin"
        self.node_path = str(self.bin_dir / "node")
        self.npm_path = str(self.bin_dir / "npm")
        self.unit_dir = root / "units"
        self.discovery_dir = root / "avahi"
        self.discovery_dir.mkdir(parents=True, exist_ok=True)

        self.node_version: str | None = None
        self.packages: set[str] = set()
        self.running: set[str] = set()

        base = DEBIAN if family == "debian" else MACOS
        self.profile: PlatformProfile = base.model_copy(
            update={"node_candidates": (self.node_path,)}
        )

        self.runner = RecordingRunner()
        self._script()

    # ── Host facts ──────────────────────────────────────────────

    def install_node(self, version: str = "20.11.0") -> None:
        self.node_version = version
        self.runner.binaries["node"] = self.node_path
        self.runner.binaries["npm"] = self.npm_path

    def install_packages(self, *names: str) -> None:
        self.packages.update(names)

    def install_all_packages(self) -> None:
        self.packages.update(self.profile.system_packages)

    # ── Scripted tools ──────────────────────────────────────────

    def _script(self) -> None:
        r = self.runner
        r.on(self.node_path, "--version", handler=self._node_version)
        r.on("dpkg", "-s", handler=self._dpkg)
        r.on("apt-get", "install", handler=self._apt_install)
        r.on("brew", "install", handler=self._brew_install)
        r.on("git", "clone", handler=self._git_clone)
        r.on(self.npm_path, "install", handler=self._npm_install)
        r.on("tee", handler=self._tee)
        r.on("rm", "-f", handler=self._rm)
        r.on("systemctl", "is-active", handler=self._is_active)
        r.on("systemctl", "start", handler=self._start)
        r.on("systemctl", "stop", handler=self._stop)
        r.on("launchctl", "load", handler=self._load)
        r.on("launchctl", "unload", handler=self._unload)
        r.on("launchctl", "list", handler=self._launchctl_list)
        if self.family == "macos":
            r.binaries["brew"] = "brew"

    def _node_version(self, call: RecordedCall) -> CommandResult:
        if self.node_version is None:
            return CommandResult(call.args, returncode=127)
        return CommandResult(call.args, stdout=f"v{self.node_version}\n")

    def _dpkg(self, call: RecordedCall) -> CommandResult:
        return CommandResult(call.args, returncode=0 if call.args[-1] in self.packages else 1)

    def _apt_install(self, call: RecordedCall) -> CommandResult:
        names = [a for a in call.args[2:] if not a.startswith("-")]
        if "nodejs" in names:
            self.install_node()
        self.packages.update(names)
        return CommandResult(call.args)

    def _brew_install(self, call: RecordedCall) -> CommandResult:
        names = [a for a in call.args[2:] if not a.startswith("-")]
        if "node" in names:
            self.install_node()
        self.packages.update(names)
        return CommandResult(call.args)

    def _git_clone(self, call: RecordedCall) -> CommandResult:
        dest = Path(call.args[-1])
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "server.js").write_text("require('dotenv');\n")
        (dest / "agent-daemon.js").write_text("// agent\n")
        (dest / ".env.example").write_text("# CarClaw bridge\nPORT=3100\n")
        return CommandResult(call.args, stdout=f"Cloning into '{dest}'...")

    def _npm_install(self, call: RecordedCall) -> CommandResult:
        if "-g" in call.args:
            self.runner.binaries["claude"] = str(self.bin_dir / "claude")
            return CommandResult(call.args, stdout="added 1 package")
        cwd = Path(call.cwd or ".")
        (cwd / "node_modules").mkdir(exist_ok=True)
        if "--save-dev" in call.args:
            bin_dir = cwd / "node_modules" / ".bin"
            bin_dir.mkdir(parents=True, exist_ok=True)
            (bin_dir / "claude").write_text("#!/bin/sh\n")
        return CommandResult(call.args, stdout="added 120 packages")

    def _tee(self, call: RecordedCall) -> CommandResult:
        path = Path(call.args[1])
        if not path.is_relative_to(self.root):
            return CommandResult(call.args, stdout=call.input_text or "")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(call.input_text or "")
        return CommandResult(call.args, stdout=call.input_text or "")

    def _rm(self, call: RecordedCall) -> CommandResult:
        path = Path(call.args[-1])
        if path.is_relative_to(self.root):
            path.unlink(missing_ok=True)
        return CommandResult(call.args)

    def _is_active(self, call: RecordedCall) -> CommandResult:
        name = call.args[-1]
        if name in self.running:
            return CommandResult(call.args, stdout="active\n")
        return CommandResult(call.args, returncode=3, stdout="inactive\n")

    def _start(self, call: RecordedCall) -> CommandResult:
        self.running.add(call.args[-1])
        return CommandResult(call.args)

    def _stop(self, call: RecordedCall) -> CommandResult:
        self.running.discard(call.args[-1])
        return CommandResult(call.args)

    def _load(self, call: RecordedCall) -> CommandResult:
        self.running.add(Path(call.args[-1]).stem)
        return CommandResult(call.args)

    def _unload(self, call: RecordedCall) -> CommandResult:
        self.running.discard(Path(call.args[-1]).stem)
        return CommandResult(call.args)

    def _launchctl_list(self, call: RecordedCall) -> CommandResult:
        lines = ["PID\tStatus\tLabel", "-\t0\tcom.apple.something"]
        lines += [f"4242\t0\t{label}" for label in sorted(self.running)]
        return CommandResult(call.args, stdout="\n".join(lines) + "\n")


def make_context(
    host: FakeHost,
    tmp_path: Path,
    target: str = "bridge",
    **settings: object,
) -> InstallContext:
    """InstallContext over a FakeHost, with all paths under tmp_path."""
    values: dict[str, object] = {
        "install_dir": tmp_path / "carclaw-bridge",
        "state_dir": tmp_path / "state",
        "target": target,
    }
    values.update(settings)
    ctx = build_context(
        InstallerSettings.model_validate(values),
        profile=host.profile,
        runner=host.runner,
        unit_dir=host.unit_dir,
        discovery_dir=host.discovery_dir,
        validator=FakeValidator(),
    )
    ctx.hostname = "m5.local"
    ctx.user = "carclaw"
    return ctx


@pytest.fixture
def debian_host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path / "host", family="debian")


@pytest.fixture
def macos_host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path / "host", family="macos")


@pytest.fixture
def debian_ctx(debian_host: FakeHost, tmp_path: Path) -> InstallContext:
    return make_context(debian_host, tmp_path)


@pytest.fixture
def macos_ctx(macos_host: FakeHost, tmp_path: Path) -> InstallContext:
    return make_context(macos_host, tmp_path)


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    return tmp_path / "carclaw-bridge"
