"""
Node.js adapter — dependency installs for the bridge checkout.

Runs ``npm install`` in the install directory and installs the
``claude`` CLI that the agent daemon drives. Version helpers here are
shared with the prober and the runtime installer.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from carclaw_installer.adapters.base import Adapter, ExecutionContext
from carclaw_installer.adapters.shell.command import CommandRunner
from carclaw_installer.core.models.action import ActionKind, Receipt
from carclaw_installer.core.models.platform import PlatformProfile

logger = logging.getLogger(__name__)

CLAUDE_CLI_PACKAGE = "@anthropic-ai/claude-code"

_VERSION_RE = re.compile(r"v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_major(version: str | None) -> int | None:
    """``"v20.11.0"`` → ``20``; None when unparseable."""
    if not version:
        return None
    match = _VERSION_RE.search(version.strip())
    return int(match.group(1)) if match else None


def resolve_node(runner: CommandRunner, profile: PlatformProfile) -> str | None:
    """Absolute path of the node binary.

    PATH first, then the places a fresh install puts it (the running
    process does not see PATH changes made by brew or apt).
    """
    found = runner.which("node")
    if found:
        return found
    for candidate in profile.node_candidates:
        if runner.path_exists(candidate):
            return candidate
    return None


def node_version(runner: CommandRunner, profile: PlatformProfile) -> str | None:
    """Version string reported by ``node --version``, or None."""
    node = resolve_node(runner, profile)
    if node is None:
        return None
    result = runner.run([node, "--version"], timeout=15)
    if not result.ok:
        return None
    return result.stdout.strip().lstrip("v") or None


def resolve_npm(runner: CommandRunner, node_path: str | None) -> str:
    """npm lives next to node; fall back to PATH lookup by name."""
    found = runner.which("npm")
    if found:
        return found
    if node_path:
        sibling = Path(node_path).with_name("npm")
        if runner.path_exists(sibling):
            return str(sibling)
    return "npm"


class NodeAdapter(Adapter):
    """npm operations against the install directory.

    Handles:
        install_dependencies: ``npm install`` in the working dir.
            With ``params["package"]`` set, installs that package
            instead (the agent's claude CLI): globally first when the
            profile allows it, otherwise or on failure into the checkout.
    """

    def __init__(self, runner: CommandRunner, profile: PlatformProfile):
        self._runner = runner
        self._profile = profile

    @property
    def name(self) -> str:
        return "node"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset({ActionKind.INSTALL_DEPENDENCIES})

    def is_available(self) -> bool:
        return resolve_node(self._runner, self._profile) is not None

    def execute(self, context: ExecutionContext) -> Receipt:
        if not Path(context.working_dir).is_dir():
            return self._fail(context, f"Install directory does not exist: {context.working_dir}")

        npm = resolve_npm(self._runner, resolve_node(self._runner, self._profile))
        package = context.action.params.get("package")

        if package and self._profile.global_cli_install:
            cmd = [npm, "install", "-g", package]
            result = self._runner.run(cmd, cwd=context.working_dir)
            if result.ok:
                return self._ok(
                    context,
                    output=result.stdout.strip()[-2000:],
                    metadata={"command": " ".join(cmd), "return_code": 0, "scope": "global"},
                )
            logger.warning("Global install of %s failed, installing into the checkout: %s",
                           package, result.error_text)

        cmd = [npm, "install"]
        if package:
            cmd.extend(["--save-dev", package])

        logger.info("Running %s in %s", " ".join(cmd[1:]), context.working_dir)
        result = self._runner.run(cmd, cwd=context.working_dir)
        if not result.ok:
            return self._fail(
                context,
                f"npm install failed: {result.error_text}",
                metadata={"command": " ".join(cmd), "return_code": result.returncode},
            )

        return self._ok(
            context,
            output=result.stdout.strip()[-2000:],
            metadata={"command": " ".join(cmd), "return_code": 0, "scope": "local"},
        )
