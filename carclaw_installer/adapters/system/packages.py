"""
Package adapter — Node.js runtime and system packages.

Two package managers sit behind one adapter: Homebrew on macOS and
apt (with the NodeSource repository for Node.js) on Debian/Ubuntu.
The adapter picks the right one from the PlatformProfile.

Package names prefixed with ``cask:`` are Homebrew casks (GUI apps
such as BlueBubbles).
"""

from __future__ import annotations

import logging
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.languages.node import node_version, parse_major
from carclaw_installer.adapters.shell.command import CommandResult, CommandRunner
from carclaw_installer.core.models.action import ActionKind, Receipt
from carclaw_installer.core.models.platform import PlatformProfile

logger = logging.getLogger(__name__)

CASK_PREFIX = "cask:"

HOMEBREW_INSTALL = (
    '/bin/bash -c "$(curl -fsSL '
    'https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
)
BREW_LOCATIONS = ("/opt/homebrew/bin/brew", "/usr/local/bin/brew")

# Cask → app bundle whose presence means the cask is installed
CASK_APPS = {
    "bluebubbles": "/Applications/BlueBubbles.app",
}

NODESOURCE_KEY_URL = "https://deb.nodesource.com/gpgkey/nodesource-repo.gpg.key"
NODESOURCE_KEYRING = "/etc/apt/keyrings/nodesource.gpg"
NODESOURCE_LIST = "/etc/apt/sources.list.d/nodesource.list"


class PackageError(RuntimeError):
    """A package manager command failed."""


class PackageManager:
    """Common interface of the two package managers."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def is_available(self) -> bool:
        raise NotImplementedError

    def install_runtime(self, channel: int) -> str:
        """Install Node.js. Returns combined command output."""
        raise NotImplementedError

    def install(self, packages: list[str]) -> str:
        raise NotImplementedError

    def is_installed(self, package: str) -> bool:
        raise NotImplementedError

    def missing(self, packages: list[str] | tuple[str, ...]) -> list[str]:
        """Subset of ``packages`` that is not installed, order kept."""
        return [p for p in packages if not self.is_installed(p)]

    def _check(self, result: CommandResult, what: str) -> str:
        if not result.ok:
            raise PackageError(f"{what} failed: {result.error_text}")
        return result.stdout.strip()


class BrewPackageManager(PackageManager):
    """Homebrew (macOS)."""

    def brew_path(self) -> str | None:
        found = self._runner.which("brew")
        if found:
            return found
        for candidate in BREW_LOCATIONS:
            if self._runner.path_exists(candidate):
                return candidate
        return None

    def is_available(self) -> bool:
        return self.brew_path() is not None

    def ensure_brew(self) -> str:
        brew = self.brew_path()
        if brew:
            return brew

        logger.info("Homebrew not found, installing it first")
        self._check(self._runner.run_shell(f"NONINTERACTIVE=1 {HOMEBREW_INSTALL}"), "Homebrew install")
        brew = self.brew_path()
        if brew is None:
            raise PackageError("Homebrew install finished but brew is still not on this machine")
        return brew

    def install_runtime(self, channel: int) -> str:
        brew = self.ensure_brew()
        return self._check(self._runner.run([brew, "install", "node"]), "brew install node")

    def install(self, packages: list[str]) -> str:
        brew = self.ensure_brew()
        casks = [p[len(CASK_PREFIX):] for p in packages if p.startswith(CASK_PREFIX)]
        formulae = [p for p in packages if not p.startswith(CASK_PREFIX)]

        outputs = []
        if formulae:
            outputs.append(self._check(self._runner.run([brew, "install", *formulae]), "brew install"))
        if casks:
            outputs.append(
                self._check(self._runner.run([brew, "install", "--cask", *casks]), "brew install --cask")
            )
        return "\n".join(o for o in outputs if o)

    def is_installed(self, package: str) -> bool:
        if package.startswith(CASK_PREFIX):
            cask = package[len(CASK_PREFIX):]
            app = CASK_APPS.get(cask)
            if app:
                return self._runner.path_exists(app)
            brew = self.brew_path()
            return bool(brew) and self._runner.run([brew, "list", "--cask", cask]).ok
        brew = self.brew_path()
        return bool(brew) and self._runner.run([brew, "list", "--formula", package]).ok


class AptPackageManager(PackageManager):
    """apt + NodeSource (Debian/Ubuntu)."""

    def is_available(self) -> bool:
        return self._runner.which("apt-get") is not None

    def install_runtime(self, channel: int) -> str:
        steps = [
            (["apt-get", "update", "-qq"], "apt-get update"),
            (["apt-get", "install", "-y", "-qq", "ca-certificates", "curl", "gnupg"], "NodeSource prerequisites"),
            (["mkdir", "-p", str(Path(NODESOURCE_KEYRING).parent)], "keyring directory"),
        ]
        for args, what in steps:
            self._check(self._runner.run(args, privileged=True), what)

        self._check(
            self._runner.run_shell(
                f"curl -fsSL {NODESOURCE_KEY_URL} | gpg --dearmor --yes -o {NODESOURCE_KEYRING}",
                privileged=True,
            ),
            "NodeSource signing key",
        )
        source = (
            f"deb [signed-by={NODESOURCE_KEYRING}] "
            f"https://deb.nodesource.com/node_{channel}.x nodistro main\n"
        )
        self._check(
            self._runner.run(["tee", NODESOURCE_LIST], input_text=source, privileged=True),
            "NodeSource repository",
        )
        self._check(self._runner.run(["apt-get", "update", "-qq"], privileged=True), "apt-get update")
        return self._check(
            self._runner.run(["apt-get", "install", "-y", "-qq", "nodejs"], privileged=True),
            "apt-get install nodejs",
        )

    def install(self, packages: list[str]) -> str:
        return self._check(
            self._runner.run(["apt-get", "install", "-y", "-qq", *packages], privileged=True),
            "apt-get install",
        )

    def is_installed(self, package: str) -> bool:
        return self._runner.run(["dpkg", "-s", package], timeout=15).ok


def get_package_manager(profile: PlatformProfile, runner: CommandRunner) -> PackageManager:
    if profile.package_manager == "brew":
        return BrewPackageManager(runner)
    return AptPackageManager(runner)


class PackageAdapter(Adapter):
    """Runtime and system package installs.

    Handles:
        install_runtime: install Node.js, then verify the installed
            major version meets ``min_node_major``.
        install_packages: install ``action.packages``.
    """

    def __init__(
        self,
        runner: CommandRunner,
        profile: PlatformProfile,
        node_channel: int = 20,
        min_node_major: int = 18,
    ):
        self._runner = runner
        self._profile = profile
        self._manager = get_package_manager(profile, runner)
        self._node_channel = node_channel
        self._min_node_major = min_node_major

    @property
    def name(self) -> str:
        return "packages"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.INSTALL_RUNTIME, ActionKind.INSTALL_PACKAGES})

    @property
    def manager(self) -> PackageManager:
        return self._manager

    def is_available(self) -> bool:
        # brew can bootstrap itself; apt cannot
        return self._profile.package_manager == "brew" or self._manager.is_available()

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        ok, error = super().validate(context)
        if not ok:
            return ok, error
        if context.action.kind == ActionKind.INSTALL_PACKAGES and not context.action.packages:
            return False, "install_packages needs at least one package"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        try:
            if context.action.kind == ActionKind.INSTALL_RUNTIME:
                return self._install_runtime(context)
            return self._install_packages(context)
        except PackageError as e:
            return self._fail(context, str(e))

    def _install_runtime(self, ctx: ExecutionContext) -> Receipt:
        logger.info("Installing Node.js via %s", self._profile.package_manager)
        output = self._manager.install_runtime(self._node_channel)

        version = node_version(self._runner, self._profile)
        major = parse_major(version)
        if major is None:
            return self._fail(ctx, "Node.js install finished but node is not runnable", output=output)
        if major < self._min_node_major:
            return self._fail(
                ctx,
                f"Installed Node.js v{version} is older than v{self._min_node_major}",
                output=output,
            )

        return self._ok(ctx, output=f"Node.js v{version}", metadata={"node_version": version})

    def _install_packages(self, ctx: ExecutionContext) -> Receipt:
        packages = list(ctx.action.packages)
        logger.info("Installing packages: %s", ", ".join(packages))
        output = self._manager.install(packages)
        return self._ok(ctx, output=output, metadata={"packages": packages})
