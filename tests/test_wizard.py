"""
Tests for the setup wizard and user prompts.
"""

from pathlib import Path

from conftest import GOOD_PASSWORD, GOOD_TOKEN, FakeHost, make_context

from carclaw_installer.core.models.state import HostState, ServiceState
from carclaw_installer.core.services.prompts import (
    DefaultsPrompt,
    ScriptedPrompt,
    parse_selection,
)
from carclaw_installer.core.services.wizard import (
    BLUEBUBBLES_CASK,
    SetupWizard,
    configured_services,
    format_agent_roster,
)


def _collect(ctx, answers=None, host=None, **kwargs):
    prompt = ScriptedPrompt(answers)
    result = SetupWizard(ctx, prompt, **kwargs).collect(host or HostState())
    return result, prompt


# ── Helpers ──────────────────────────────────────────────────────────


class TestAgentRoster:
    def test_default_roster(self):
        assert format_agent_roster("Mini, M5, DGX, Copilot") == "mini:Mini,m5:M5,dgx:DGX,copilot:Copilot"

    def test_spaces_become_hyphens(self):
        assert format_agent_roster("  Mac  Studio ,Pi") == "mac-studio:Mac Studio,pi:Pi"

    def test_empty_entries_dropped(self):
        assert format_agent_roster("Mini,, ,M5") == "mini:Mini,m5:M5"
        assert format_agent_roster("") == ""


class TestConfiguredServices:
    def test_detects_existing(self):
        values = {"TELEGRAM_TOKEN": "x", "WHATSAPP_ENABLED": "true", "IMESSAGE_ENABLED": "false"}
        assert configured_services(values) == {"telegram", "whatsapp"}


class TestParseSelection:
    OPTIONS = [("telegram", "Telegram"), ("whatsapp", "WhatsApp"), ("imessage", "iMessage")]

    def test_numbers(self):
        assert parse_selection("1 3", self.OPTIONS) == ["telegram", "imessage"]

    def test_commas_junk_and_duplicates(self):
        assert parse_selection("2,2, x 9 0", self.OPTIONS) == ["whatsapp"]

    def test_empty(self):
        assert parse_selection("", self.OPTIONS) == []


# ── Bridge: services ─────────────────────────────────────────────────


class TestMessagingServices:
    def test_no_services_selected(self, debian_ctx):
        result, prompt = _collect(debian_ctx)
        assert result.desired.selected_services == set()
        assert ("warn", "No services selected. You can re-run the installer later.") in prompt.messages

    def test_imessage_not_offered_on_debian(self, debian_ctx):
        result, prompt = _collect(debian_ctx, {"services": ["telegram", "imessage"], "telegram_token": GOOD_TOKEN})
        assert result.desired.selected_services == {"telegram"}
        assert any("iMessage is not available" in m for _, m in prompt.messages)

    def test_valid_telegram_token(self, debian_ctx):
        result, _ = _collect(debian_ctx, {"services": ["telegram"], "telegram_token": GOOD_TOKEN})
        assert result.desired.values["TELEGRAM_TOKEN"] == GOOD_TOKEN
        assert result.validation_failures == []

    def test_rejected_telegram_token(self, debian_ctx):
        result, prompt = _collect(debian_ctx, {"services": ["telegram"], "telegram_token": "bad"})
        assert "TELEGRAM_TOKEN" not in result.desired.values
        assert "telegram" not in result.desired.selected_services
        assert result.validation_failures[0].service == "telegram"
        assert result.validation_failures[0].message == "Unauthorized"
        assert ("fail", "Unauthorized. You can configure telegram later.") in prompt.messages

    def test_rejection_does_not_stop_other_steps(self, debian_ctx):
        result, _ = _collect(debian_ctx, {
            "services": ["telegram", "whatsapp"],
            "telegram_token": "bad",
            "whatsapp_enable": True,
        })
        assert result.desired.values["WHATSAPP_ENABLED"] == "true"
        assert result.desired.values["AGENTS"] == "mini:Mini,m5:M5,dgx:DGX,copilot:Copilot"
        assert result.desired.unit is not None

    def test_blank_token_skips(self, debian_ctx):
        result, _ = _collect(debian_ctx, {"services": ["telegram"]})
        assert result.validation_failures == []
        assert result.desired.selected_services == set()

    def test_whatsapp_declined(self, debian_ctx):
        result, _ = _collect(debian_ctx, {"services": ["whatsapp"], "whatsapp_enable": False})
        assert "WHATSAPP_ENABLED" not in result.desired.values

    def test_already_configured_not_prompted(self, debian_ctx):
        host = HostState(config_values={"TELEGRAM_TOKEN": GOOD_TOKEN, "AGENTS": "mini:Mini"})
        result, prompt = _collect(debian_ctx, {"services": ["telegram"]}, host=host)
        assert "telegram_token" not in prompt.asked
        assert result.desired.selected_services == {"telegram"}
        assert "TELEGRAM_TOKEN" not in result.desired.values


class TestIMessage:
    def test_bluebubbles_missing_offers_install(self, macos_ctx):
        host = HostState(missing_packages=[BLUEBUBBLES_CASK])
        result, prompt = _collect(
            macos_ctx,
            {"services": ["imessage"], "bluebubbles_install": True},
            host=host,
        )
        assert BLUEBUBBLES_CASK in result.desired.packages
        assert "bluebubbles_password" not in prompt.asked
        assert "IMESSAGE_ENABLED" not in result.desired.values

    def test_bluebubbles_install_declined(self, macos_ctx):
        host = HostState(missing_packages=[BLUEBUBBLES_CASK])
        result, _ = _collect(macos_ctx, {"services": ["imessage"], "bluebubbles_install": False}, host=host)
        assert BLUEBUBBLES_CASK not in result.desired.packages

    def test_password_validated(self, macos_ctx):
        result, _ = _collect(macos_ctx, {"services": ["imessage"], "bluebubbles_password": GOOD_PASSWORD})
        values = result.desired.values
        assert values["IMESSAGE_ENABLED"] == "true"
        assert values["BLUEBUBBLES_PASSWORD"] == GOOD_PASSWORD
        assert values["BLUEBUBBLES_URL"] == macos_ctx.settings.bluebubbles_url
        assert result.desired.selected_services == {"imessage"}

    def test_bad_password(self, macos_ctx):
        result, _ = _collect(macos_ctx, {"services": ["imessage"], "bluebubbles_password": "wrong"})
        assert "IMESSAGE_ENABLED" not in result.desired.values
        assert result.validation_failures[0].service == "imessage"


# ── Bridge: agents ───────────────────────────────────────────────────


class TestAgents:
    def test_custom_roster(self, debian_ctx):
        result, _ = _collect(debian_ctx, {"agents": "Alpha, Beta"})
        assert result.desired.values["AGENTS"] == "alpha:Alpha,beta:Beta"

    def test_blank_answer_falls_back_to_default(self, debian_ctx):
        result, _ = _collect(debian_ctx, {"agents": " , "})
        assert result.desired.values["AGENTS"] == "mini:Mini,m5:M5,dgx:DGX,copilot:Copilot"

    def test_existing_roster_kept(self, debian_ctx):
        host = HostState(config_values={"AGENTS": "mini:Mini"})
        result, prompt = _collect(debian_ctx, host=host)
        assert "AGENTS" not in result.desired.values
        assert "agents" not in prompt.asked

    def test_existing_roster_reconfigured(self, debian_ctx):
        host = HostState(config_values={"AGENTS": "mini:Mini"})
        result, _ = _collect(debian_ctx, {"agents_reconfigure": True, "agents": "Zed"}, host=host)
        assert result.desired.values["AGENTS"] == "zed:Zed"


class TestBridgeDesired:
    def test_debian_packages_and_discovery(self, debian_ctx):
        result, _ = _collect(debian_ctx)
        desired = result.desired
        assert "git" in desired.packages
        assert desired.discovery is True
        assert desired.discovery_port == 3100
        assert desired.unit.name == "carclaw-bridge"

    def test_macos_has_no_discovery(self, macos_ctx):
        result, _ = _collect(macos_ctx)
        assert result.desired.discovery is False
        assert result.desired.packages == []


# ── Agent daemon ─────────────────────────────────────────────────────


class TestAgentDaemon:
    def test_defaults(self, debian_host: FakeHost, tmp_path: Path):
        ctx = make_context(debian_host, tmp_path, target="agent")
        result, _ = _collect(ctx)
        values = result.desired.values
        assert values["BRIDGE_URL"] == "ws://m5.local:3100"
        assert values["MACHINE_NAME"] == "M5"
        assert values["PROJECT_DIR"] == str(Path.home() / "Projects" / "carclaw")
        assert values["CLAUDECODE"] == ""
        assert result.desired.install_cli is True
        assert values["CLAUDE_BIN"] == str(ctx.install_dir / "node_modules" / ".bin" / "claude")
        assert result.desired.unit.env_vars["BRIDGE_URL"] == "ws://m5.local:3100"

    def test_answers_and_existing_cli(self, debian_host: FakeHost, tmp_path: Path):
        debian_host.runner.binaries["claude"] = "/usr/local/bin/claude"
        ctx = make_context(debian_host, tmp_path, target="agent")
        result, _ = _collect(ctx, {
            "bridge_url": "ws://bridge.lan:3100",
            "machine_name": "DGX",
            "project_dir": "/srv/work",
        })
        values = result.desired.values
        assert values["BRIDGE_URL"] == "ws://bridge.lan:3100"
        assert values["MACHINE_NAME"] == "DGX"
        assert values["PROJECT_DIR"] == "/srv/work"
        assert values["CLAUDE_BIN"] == "/usr/local/bin/claude"
        assert result.desired.install_cli is False

    def test_previous_values_are_defaults(self, debian_host: FakeHost, tmp_path: Path):
        ctx = make_context(debian_host, tmp_path, target="agent")
        host = HostState(config_values={"BRIDGE_URL": "ws://old:3100", "MACHINE_NAME": "Mini"})
        result, _ = _collect(ctx, host=host)
        assert result.desired.values["BRIDGE_URL"] == "ws://old:3100"
        assert result.desired.values["MACHINE_NAME"] == "Mini"

    def test_macos_machine_name_from_computer_name(self, macos_host: FakeHost, tmp_path: Path):
        macos_host.runner.on("scutil", "--get", "ComputerName", stdout="Studio Mac Mini\n")
        ctx = make_context(macos_host, tmp_path, target="agent")
        result, _ = _collect(ctx)
        assert result.desired.values["MACHINE_NAME"] == "Studio-Mac-Mini"

    def test_macos_machine_name_falls_back_to_hostname(self, macos_host: FakeHost, tmp_path: Path):
        macos_host.runner.on("scutil", returncode=1, stderr="ComputerName: not set")
        ctx = make_context(macos_host, tmp_path, target="agent")
        result, _ = _collect(ctx)
        assert result.desired.values["MACHINE_NAME"] == "m5"

    def test_macos_expects_global_claude(self, macos_host: FakeHost, tmp_path: Path):
        ctx = make_context(macos_host, tmp_path, target="agent")
        result, _ = _collect(ctx)
        assert result.desired.install_cli is True
        assert result.desired.values["CLAUDE_BIN"] == str(macos_host.bin_dir / "claude")

    def test_missing_recorded_claude_replaced(self, debian_host: FakeHost, tmp_path: Path):
        debian_host.runner.binaries["claude"] = "/usr/local/bin/claude"
        ctx = make_context(debian_host, tmp_path, target="agent")
        host = HostState(config_values={"CLAUDE_BIN": str(tmp_path / "gone" / "claude")})
        result, _ = _collect(ctx, host=host)
        assert result.desired.values["CLAUDE_BIN"] == "/usr/local/bin/claude"

    def test_changed_setting_recreates_registered_unit(self, debian_host: FakeHost, tmp_path: Path):
        ctx = make_context(debian_host, tmp_path, target="agent")
        host = HostState(
            service=ServiceState.RUNNING,
            config_values={"BRIDGE_URL": "ws://old:3100", "MACHINE_NAME": "M5"},
        )
        result, prompt = _collect(ctx, {"bridge_url": "ws://new:3100"}, host=host)
        assert result.desired.recreate_service is True
        assert "recreate_service" not in prompt.asked
        assert result.desired.unit.env_vars["BRIDGE_URL"] == "ws://new:3100"

    def test_no_messaging_questions(self, debian_host: FakeHost, tmp_path: Path):
        ctx = make_context(debian_host, tmp_path, target="agent")
        _, prompt = _collect(ctx)
        assert "services" not in prompt.asked
        assert "agents" not in prompt.asked


# ── Service choices ──────────────────────────────────────────────────


class TestServiceChoices:
    def test_start_asked_by_default(self, debian_ctx):
        result, prompt = _collect(debian_ctx, {"start_service": False})
        assert "start_service" in prompt.asked
        assert result.desired.start_service is False

    def test_start_flag_skips_question(self, debian_ctx):
        result, prompt = _collect(debian_ctx, start_service=True)
        assert "start_service" not in prompt.asked
        assert result.desired.start_service is True

    def test_recreate_only_asked_when_registered(self, debian_ctx):
        _, prompt = _collect(debian_ctx)
        assert "recreate_service" not in prompt.asked

        host = HostState(service=ServiceState.REGISTERED)
        result, prompt = _collect(debian_ctx, {"recreate_service": True}, host=host)
        assert "recreate_service" in prompt.asked
        assert result.desired.recreate_service is True

    def test_recreate_flag(self, debian_ctx):
        host = HostState(service=ServiceState.RUNNING)
        result, prompt = _collect(debian_ctx, host=host, recreate_service=True)
        assert result.desired.recreate_service is True
        assert "recreate_service" not in prompt.asked

    def test_update_flag(self, debian_ctx):
        result, _ = _collect(debian_ctx, update=True)
        assert result.desired.update is True


class TestDefaultsPrompt:
    def test_non_interactive_answers(self, debian_ctx):
        prompt = DefaultsPrompt(echo=False)
        result = SetupWizard(debian_ctx, prompt).collect(HostState())
        assert result.desired.selected_services == set()
        assert result.desired.values["AGENTS"] == "mini:Mini,m5:M5,dgx:DGX,copilot:Copilot"
        assert result.desired.start_service is True
