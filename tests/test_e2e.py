"""
End-to-end install runs over a simulated host.

probe → wizard → plan → execute → re-probe → health → audit, with
every external command answered by FakeHost.
"""

import plistlib
from pathlib import Path

import pytest
from conftest import GOOD_TOKEN, FakeHost, make_context

from carclaw_installer.core.models.action import ActionKind
from carclaw_installer.core.models.state import ServiceState
from carclaw_installer.core.services.prompts import ScriptedPrompt
from carclaw_installer.core.use_cases.install import run_install
from carclaw_installer.core.use_cases.status import get_status, preview_plan
from carclaw_installer.core.use_cases.uninstall import run_uninstall


@pytest.fixture(autouse=True)
def _free_port(monkeypatch):
    monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: False)


def _install(ctx, answers=None, **kwargs):
    return run_install(ctx, ScriptedPrompt(answers), **kwargs)


def _pending_kinds(result) -> list[ActionKind]:
    return [a.kind for a in result.plan.pending]


# ── Fresh installs ───────────────────────────────────────────────────


class TestFreshInstall:
    def test_macos_bridge(self, macos_host: FakeHost, macos_ctx, install_dir: Path):
        result = _install(macos_ctx)

        assert result.exit_code == 0, result.error
        assert _pending_kinds(result) == [
            ActionKind.INSTALL_RUNTIME,
            ActionKind.CLONE_OR_UPDATE_REPO,
            ActionKind.INSTALL_DEPENDENCIES,
            ActionKind.SET_CONFIG_VALUE,
            ActionKind.REGISTER_SERVICE,
            ActionKind.START_SERVICE,
        ]
        assert (install_dir / "server.js").exists()
        assert (install_dir / "node_modules").is_dir()
        assert macos_ctx.store.get("AGENTS") == "mini:Mini,m5:M5,dgx:DGX,copilot:Copilot"
        assert macos_ctx.store.get("PORT") == "3100"
        assert (macos_host.unit_dir / "com.congruentsys.carclaw-bridge.plist").exists()
        assert result.after.service == ServiceState.RUNNING
        assert not result.health.failed

    def test_debian_bridge(self, debian_host: FakeHost, debian_ctx):
        result = _install(debian_ctx, {"services": ["telegram"], "telegram_token": GOOD_TOKEN})

        assert result.exit_code == 0, result.error
        kinds = _pending_kinds(result)
        assert kinds[:3] == [
            ActionKind.INSTALL_RUNTIME,
            ActionKind.INSTALL_PACKAGES,
            ActionKind.CLONE_OR_UPDATE_REPO,
        ]
        assert ActionKind.REGISTER_DISCOVERY in kinds
        assert kinds[-2:] == [ActionKind.REGISTER_SERVICE, ActionKind.START_SERVICE]

        assert debian_ctx.store.get("TELEGRAM_TOKEN") == GOOD_TOKEN
        assert (debian_host.discovery_dir / "carclaw-bridge.service").exists()
        unit_text = (debian_host.unit_dir / "carclaw-bridge.service").read_text()
        assert "User=carclaw" in unit_text
        assert f"ExecStart={debian_host.node_path} -r dotenv/config server.js" in unit_text
        assert "carclaw-bridge" in debian_host.running
        assert result.after.is_satisfied("packages")

    def test_agent_on_macos(self, macos_host: FakeHost, tmp_path: Path):
        ctx = make_context(macos_host, tmp_path, target="agent")
        result = _install(ctx, {"bridge_url": "ws://bridge.lan:3100", "machine_name": "Mini"})

        assert result.exit_code == 0, result.error
        assert result.after.is_satisfied("cli_tool")
        assert ctx.store.get("BRIDGE_URL") == "ws://bridge.lan:3100"
        assert ctx.store.get("MACHINE_NAME") == "Mini"
        plist = (macos_host.unit_dir / "com.congruentsys.carclaw-agent.plist").read_text()
        assert "ws://bridge.lan:3100" in plist
        assert "com.congruentsys.carclaw-agent" in macos_host.running

    def test_unit_runs_node_where_brew_put_it(self, tmp_path: Path):
        host = FakeHost(tmp_path / "host", family="macos")
        host.profile = host.profile.model_copy(
            update={"node_candidates": (str(tmp_path / "opt" / "homebrew" / "bin" / "node"), host.node_path)}
        )
        ctx = make_context(host, tmp_path)

        first = _install(ctx)
        assert first.exit_code == 0, first.error
        assert first.desired.unit.executable_path != host.node_path
        plist = plistlib.loads((host.unit_dir / "com.congruentsys.carclaw-bridge.plist").read_bytes())
        assert plist["ProgramArguments"][0] == host.node_path
        assert _install(ctx).already_converged

    def test_no_start(self, debian_host: FakeHost, debian_ctx):
        result = _install(debian_ctx, start_service=False)
        assert result.exit_code == 0
        assert ActionKind.START_SERVICE not in _pending_kinds(result)
        assert result.after.service == ServiceState.REGISTERED


# ── Idempotence ──────────────────────────────────────────────────────


class TestConvergence:
    @pytest.mark.parametrize("family", ["debian", "macos"])
    def test_second_run_is_empty(self, family: str, tmp_path: Path):
        host = FakeHost(tmp_path / "host", family=family)
        ctx = make_context(host, tmp_path)
        answers = {"services": ["telegram"], "telegram_token": GOOD_TOKEN}

        first = _install(ctx, answers)
        assert first.exit_code == 0, first.error
        env_after_first = ctx.store.path.read_text()

        host.runner.reset_calls()
        second = _install(ctx, answers)

        assert second.exit_code == 0
        assert second.already_converged
        assert second.plan.pending == []
        assert not any(c.privileged for c in host.runner.calls)
        assert ctx.store.path.read_text() == env_after_first

    @pytest.mark.parametrize("family", ["debian", "macos"])
    def test_agent_second_run_is_empty(self, family: str, tmp_path: Path):
        host = FakeHost(tmp_path / "host", family=family)
        ctx = make_context(host, tmp_path, target="agent")

        first = _install(ctx)
        assert first.exit_code == 0, first.error
        env_after_first = ctx.store.path.read_text()

        second = _install(ctx)
        assert second.plan.pending == []
        assert ctx.store.path.read_text() == env_after_first

    def test_partial_host_only_fills_gaps(self, debian_host: FakeHost, debian_ctx):
        debian_host.install_node("20.11.0")
        debian_host.install_all_packages()
        result = _install(debian_ctx)
        kinds = _pending_kinds(result)
        assert ActionKind.INSTALL_RUNTIME not in kinds
        assert ActionKind.INSTALL_PACKAGES not in kinds
        assert ActionKind.CLONE_OR_UPDATE_REPO in kinds

    def test_hand_edits_survive(self, macos_ctx, install_dir: Path):
        _install(macos_ctx)
        env = install_dir / ".env"
        env.write_text(env.read_text() + "# mine\nCUSTOM=keep\n")

        _install(macos_ctx, {"agents_reconfigure": True, "agents": "Solo"})
        assert macos_ctx.store.get("CUSTOM") == "keep"
        assert macos_ctx.store.get("AGENTS") == "solo:Solo"
        assert "# mine" in env.read_text()

    def test_update_pulls(self, macos_host: FakeHost, macos_ctx):
        _install(macos_ctx)
        result = _install(macos_ctx, update=True)
        assert not result.already_converged
        assert macos_host.runner.ran("git", "-C", str(macos_ctx.install_dir), "pull", "--ff-only")

    def test_recreate_restarts(self, debian_host: FakeHost, debian_ctx):
        _install(debian_ctx)
        debian_host.runner.reset_calls()
        result = _install(debian_ctx, recreate_service=True)
        assert _pending_kinds(result) == [
            ActionKind.STOP_SERVICE,
            ActionKind.REGISTER_SERVICE,
            ActionKind.START_SERVICE,
        ]
        assert "carclaw-bridge" in debian_host.running


# ── Failures ─────────────────────────────────────────────────────────


class TestFailures:
    def test_invalid_credential_still_installs(self, debian_host: FakeHost, debian_ctx):
        result = _install(debian_ctx, {"services": ["telegram"], "telegram_token": "bad"})
        assert result.exit_code == 0
        assert [f.service for f in result.validation_failures] == ["telegram"]
        assert debian_ctx.store.get("TELEGRAM_TOKEN") is None
        assert "carclaw-bridge" in debian_host.running

    def test_rejected_credential_on_running_install(self, debian_host: FakeHost, debian_ctx):
        assert _install(debian_ctx).exit_code == 0
        env_before = debian_ctx.store.path.read_bytes()

        result = _install(debian_ctx, {"services": ["telegram"], "telegram_token": "bad"})

        assert result.exit_code == 0
        assert result.plan.pending == []
        assert [f.service for f in result.validation_failures] == ["telegram"]
        assert "carclaw-bridge" in debian_host.running
        assert debian_ctx.store.path.read_bytes() == env_before

    def test_clone_failure_halts(self, debian_host: FakeHost, debian_ctx):
        debian_host.runner.on("git", "clone", returncode=128, stderr="fatal: repository not found")
        result = _install(debian_ctx)

        assert result.exit_code == 1
        assert "repository not found" in result.error
        assert result.report.halted_at.endswith(":clone_or_update_repo:repository")
        assert not debian_host.unit_dir.exists()
        assert result.health is None

    def test_best_effort_failure_is_a_warning(self, debian_host: FakeHost, debian_ctx):
        debian_host.runner.on("tee", str(debian_host.discovery_dir / "carclaw-bridge.service"),
                              returncode=1, stderr="Permission denied")
        result = _install(debian_ctx)
        assert result.exit_code == 0
        assert result.report.warnings
        assert "carclaw-bridge" in debian_host.running

    def test_broken_entrypoint_fails_health(self, debian_host: FakeHost, debian_ctx):
        debian_host.runner.on(debian_host.node_path, "--check", returncode=1, stderr="SyntaxError")
        result = _install(debian_ctx)
        assert result.health.failed
        assert result.exit_code == 1


# ── Dry run / mock ───────────────────────────────────────────────────


class TestDryRun:
    def test_changes_nothing(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        result = _install(debian_ctx, dry_run=True)
        assert result.exit_code == 0
        assert not install_dir.exists()
        assert not any(c.privileged for c in debian_host.runner.calls)
        assert debian_ctx.audit.read_all() == []
        assert result.after is None

    def test_mock_mode(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        result = _install(debian_ctx, mock=True)
        assert result.exit_code == 0
        assert not install_dir.exists()
        assert all(r.metadata.get("mock") for r in result.report.receipts if r.ok)


# ── Audit / status / plan ────────────────────────────────────────────


class TestStatusAndPlan:
    def test_audit_written(self, macos_ctx):
        _install(macos_ctx)
        entries = macos_ctx.audit.read_all()
        assert len(entries) == 1
        assert entries[0].operation_type == "install"
        assert entries[0].status == "ok"
        assert "AGENTS" in entries[0].context["config_keys"]

    def test_status_after_install(self, macos_ctx):
        _install(macos_ctx)
        status = get_status(macos_ctx)
        assert status.host.service == ServiceState.RUNNING
        assert status.last_run is not None
        assert status.to_dict()["commands"]["logs"] == "tail -f /tmp/carclaw-bridge.log"

    def test_preview_plan_changes_nothing(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        result = preview_plan(debian_ctx)
        assert not result.plan.is_empty
        assert not install_dir.exists()
        assert not any(c.privileged for c in debian_host.runner.calls)

    def test_preview_plan_empty_after_install(self, macos_ctx):
        _install(macos_ctx)
        assert preview_plan(macos_ctx).plan.is_empty


# ── Uninstall ────────────────────────────────────────────────────────


class TestUninstall:
    def test_keep_files(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        _install(debian_ctx)
        result = run_uninstall(debian_ctx, ScriptedPrompt({"remove_files": False}))

        assert result.exit_code == 0
        assert "carclaw-bridge" not in debian_host.running
        assert not (debian_host.unit_dir / "carclaw-bridge.service").exists()
        assert install_dir.exists()
        assert f"Files kept in {install_dir}" in result.notes
        assert "The Bonjour service file was left in place" in result.notes

    def test_remove_files(self, macos_host: FakeHost, macos_ctx, install_dir: Path):
        _install(macos_ctx)
        result = run_uninstall(macos_ctx, ScriptedPrompt(), remove_files=True)
        assert result.exit_code == 0
        assert not install_dir.exists()
        assert not (macos_host.unit_dir / "com.congruentsys.carclaw-bridge.plist").exists()

    def test_stop_failure_keeps_unit(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        _install(debian_ctx)
        debian_host.runner.on("systemctl", "stop", returncode=1, stderr="Job for carclaw-bridge.service canceled")

        result = run_uninstall(debian_ctx, ScriptedPrompt(), remove_files=True)

        assert result.exit_code == 1
        assert "canceled" in result.error
        assert "carclaw-bridge" in debian_host.running
        assert (debian_host.unit_dir / "carclaw-bridge.service").exists()
        assert install_dir.exists()
        assert result.removed_files is False

    def test_nothing_installed(self, debian_ctx):
        result = run_uninstall(debian_ctx, ScriptedPrompt())
        assert result.exit_code == 0
        assert result.plan.pending == []

    def test_reinstall_after_uninstall(self, macos_host: FakeHost, macos_ctx):
        _install(macos_ctx)
        run_uninstall(macos_ctx, ScriptedPrompt(), remove_files=False)
        result = _install(macos_ctx)
        assert _pending_kinds(result) == [ActionKind.REGISTER_SERVICE, ActionKind.START_SERVICE]
