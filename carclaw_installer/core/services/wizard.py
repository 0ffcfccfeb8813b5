"""
Setup wizard — gathers the DesiredConfig for one install run.

The wizard talks to the user only through a ``UserPrompt`` and reads
the host only through the probed HostState, so it runs the same way
interactively, non-interactively, and under test.

Values already in the Config Store act as defaults. Messaging
services that are already configured are not prompted for again.
A credential the external API rejects becomes a ValidationFailure:
the service is dropped from this run and everything else proceeds.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from carclaw_installer.adapters.system.packages import CASK_PREFIX
from carclaw_installer.core.context import InstallContext
from carclaw_installer.core.models.desired import DesiredConfig, ValidationFailure
from carclaw_installer.core.models.state import HostState
from carclaw_installer.core.services.prober import default_machine_name, find_claude
from carclaw_installer.core.services.prompts import UserPrompt
from carclaw_installer.core.services.service_units import build_unit, node_path

logger = logging.getLogger(__name__)

BLUEBUBBLES_CASK = f"{CASK_PREFIX}bluebubbles"

SERVICE_LABELS = {
    "telegram": "Telegram (bot in group chats)",
    "whatsapp": "WhatsApp (via WhatsApp Web)",
    "imessage": "iMessage (via BlueBubbles, macOS only)",
}


@dataclass
class WizardResult:
    """DesiredConfig plus any credentials that failed validation."""

    desired: DesiredConfig
    validation_failures: list[ValidationFailure] = field(default_factory=list)


def format_agent_roster(raw: str) -> str:
    """``"Mini, M5"`` → ``"mini:Mini,m5:M5"``.

    Names are trimmed; ids are lowercased with spaces turned into
    hyphens. Empty entries are dropped.
    """
    entries = []
    for name in raw.split(","):
        name = " ".join(name.split())
        if name:
            entries.append(f"{name.lower().replace(' ', '-')}:{name}")
    return ",".join(entries)


def configured_services(values: dict[str, str]) -> set[str]:
    """Messaging services the existing config already enables."""
    found = set()
    if values.get("TELEGRAM_TOKEN"):
        found.add("telegram")
    if values.get("WHATSAPP_ENABLED") == "true":
        found.add("whatsapp")
    if values.get("IMESSAGE_ENABLED") == "true":
        found.add("imessage")
    return found


class SetupWizard:
    """Builds a DesiredConfig for the context's target.

    Args:
        recreate_service: Replace an existing service unit without asking.
        start_service: Start after install; None means ask.
        update: Pull latest code and reinstall dependencies.
    """

    def __init__(
        self,
        ctx: InstallContext,
        prompt: UserPrompt,
        *,
        recreate_service: bool = False,
        start_service: bool | None = None,
        update: bool = False,
    ):
        self._ctx = ctx
        self._prompt = prompt
        self._recreate = recreate_service
        self._start = start_service
        self._update = update
        self._failures: list[ValidationFailure] = []

    def collect(self, host: HostState) -> WizardResult:
        ctx = self._ctx
        desired = DesiredConfig(
            repo_url=ctx.settings.repo_url,
            install_dir=str(ctx.install_dir),
            update=self._update,
            discovery=bool(ctx.profile.discovery_backend and ctx.target.publishes_discovery),
            discovery_port=ctx.settings.bridge_port,
        )

        if ctx.target.name == "bridge":
            desired.packages = list(ctx.profile.system_packages)
            self._collect_services(host, desired)
            self._collect_agents(host, desired)
        else:
            self._collect_agent_daemon(host, desired)

        merged = {**host.config_values, **desired.values}
        desired.unit = build_unit(ctx, merged)
        self._collect_service_choices(host, desired)

        return WizardResult(desired=desired, validation_failures=list(self._failures))

    # ── Bridge: messaging services ──────────────────────────────

    def _collect_services(self, host: HostState, desired: DesiredConfig) -> None:
        profile = self._ctx.profile
        if not profile.supports("imessage"):
            self._prompt.notify(f"iMessage is not available on {profile.label}; use a Mac for iMessage bridging.")

        options = [(s, SERVICE_LABELS.get(s, s)) for s in profile.available_services]
        chosen = self._prompt.choose_many(
            "services",
            "Which messaging services do you want to connect?",
            options,
        )
        if not chosen:
            self._prompt.notify("No services selected. You can re-run the installer later.", "warn")
            return

        already = configured_services(host.config_values)
        for service in chosen:
            if service in already:
                self._prompt.notify(f"{SERVICE_LABELS[service].split(' (')[0]} already configured", "skip")
                desired.selected_services.add(service)
                continue
            setup = getattr(self, f"_setup_{service}")
            if setup(host, desired):
                desired.selected_services.add(service)

    def _setup_telegram(self, host: HostState, desired: DesiredConfig) -> bool:
        self._prompt.notify("Get a bot token from @BotFather (/newbot), then /setprivacy → Disable.")
        token = self._prompt.ask_secret("telegram_token", "Paste your bot token")
        if not token:
            self._prompt.notify("No token entered, skipping Telegram", "warn")
            return False

        check = self._ctx.validator.validate_telegram_token(token)
        if not check.valid:
            self._reject("telegram", check.message)
            return False

        self._prompt.notify(check.message, "ok")
        desired.values["TELEGRAM_TOKEN"] = token
        return True

    def _setup_whatsapp(self, host: HostState, desired: DesiredConfig) -> bool:
        self._prompt.notify("WhatsApp Web linking may be blocked by Meta. If QR scanning fails, use Telegram.", "warn")
        if not self._prompt.confirm("whatsapp_enable", "Enable WhatsApp?", default=False):
            self._prompt.notify("WhatsApp skipped")
            return False
        desired.values["WHATSAPP_ENABLED"] = "true"
        self._prompt.notify("WhatsApp enabled; scan the QR code under Linked Devices when the bridge starts", "ok")
        return True

    def _setup_imessage(self, host: HostState, desired: DesiredConfig) -> bool:
        if BLUEBUBBLES_CASK in host.missing_packages:
            if self._prompt.confirm("bluebubbles_install", "Install BlueBubbles?", default=True):
                desired.packages.append(BLUEBUBBLES_CASK)
                self._prompt.notify(
                    "BlueBubbles will be installed. Open it, set a server password, "
                    "then re-run the installer to finish iMessage setup.",
                )
            else:
                self._prompt.notify("Skipping BlueBubbles install; you can install it later")
            return False

        password = self._prompt.ask_secret("bluebubbles_password", "Enter your BlueBubbles server password")
        if not password:
            self._prompt.notify("No password entered, skipping iMessage", "warn")
            return False

        url = self._ctx.settings.bluebubbles_url
        check = self._ctx.validator.validate_bluebubbles(url, password)
        if not check.valid:
            self._reject("imessage", check.message)
            return False

        self._prompt.notify(check.message, "ok")
        desired.values.update({
            "IMESSAGE_ENABLED": "true",
            "BLUEBUBBLES_URL": url,
            "BLUEBUBBLES_PASSWORD": password,
        })
        return True

    # ── Bridge: agent roster ────────────────────────────────────

    def _collect_agents(self, host: HostState, desired: DesiredConfig) -> None:
        current = host.config_values.get("AGENTS")
        if current:
            self._prompt.notify(f"Agents already configured: {current}", "ok")
            if not self._prompt.confirm("agents_reconfigure", "Reconfigure?", default=False):
                return

        default = self._ctx.settings.default_agents
        raw = self._prompt.ask("agents", "Agent names, comma separated", default=default)
        roster = format_agent_roster(raw) or format_agent_roster(default)
        desired.values["AGENTS"] = roster

    # ── Agent daemon ────────────────────────────────────────────

    def _collect_agent_daemon(self, host: HostState, desired: DesiredConfig) -> None:
        ctx = self._ctx
        current = host.config_values

        desired.values["BRIDGE_URL"] = self._prompt.ask(
            "bridge_url",
            "Bridge URL (WebSocket address of the CarClaw bridge)",
            default=current.get("BRIDGE_URL") or ctx.settings.default_bridge_url,
        )
        desired.values["MACHINE_NAME"] = self._prompt.ask(
            "machine_name",
            "Machine name (how this agent identifies itself)",
            default=current.get("MACHINE_NAME") or default_machine_name(ctx),
        )
        desired.values["PROJECT_DIR"] = self._prompt.ask(
            "project_dir",
            "Project directory (the repo Claude works in)",
            default=current.get("PROJECT_DIR") or os.path.expanduser(ctx.settings.default_project_dir),
        )

        recorded = current.get("CLAUDE_BIN")
        claude = find_claude(ctx)
        if claude:
            self._prompt.notify(f"Found claude at {claude}", "ok")
        else:
            self._prompt.notify("claude CLI not found; it will be installed via npm", "warn")
            desired.install_cli = True
            claude = self._expected_claude_path()
        # a recorded path that no longer exists is replaced
        if recorded and (recorded == claude or ctx.runner.path_exists(recorded)):
            claude = recorded
        desired.values["CLAUDE_BIN"] = claude
        desired.values["CLAUDECODE"] = ""

    def _expected_claude_path(self) -> str:
        """Where the npm install will put claude."""
        ctx = self._ctx
        if ctx.profile.global_cli_install:
            return str(Path(node_path(ctx)).with_name("claude"))
        return str(ctx.install_dir / "node_modules" / ".bin" / "claude")

    # ── Service ─────────────────────────────────────────────────

    def _collect_service_choices(self, host: HostState, desired: DesiredConfig) -> None:
        name = self._ctx.target.service_name
        if host.service_registered:
            drift = _unit_env_drift(host, desired)
            if drift:
                self._prompt.notify(f"{name} settings changed ({', '.join(drift)}); the service will be recreated")
                desired.recreate_service = True
            else:
                desired.recreate_service = self._recreate or self._prompt.confirm(
                    "recreate_service",
                    f"{name} is already registered. Recreate it?",
                    default=False,
                )

        if self._start is None:
            desired.start_service = self._prompt.confirm(
                "start_service",
                f"Start {name} now?",
                default=True,
            )
        else:
            desired.start_service = self._start

    def _reject(self, service: str, message: str) -> None:
        logger.info("Credential for %s rejected: %s", service, message)
        self._failures.append(ValidationFailure(service=service, message=message))
        self._prompt.notify(f"{message}. You can configure {service} later.", "fail")


def _unit_env_drift(host: HostState, desired: DesiredConfig) -> list[str]:
    """Config keys the registered unit embeds whose value changes this run."""
    if desired.unit is None:
        return []
    return [
        key
        for key in desired.unit.env_vars
        if key in desired.values and host.config_values.get(key) != desired.values[key]
    ]
