"""
Tests for observability — health checks and logging setup.
"""

import logging
import socket
from pathlib import Path

import pytest
from conftest import FakeHost

from carclaw_installer.core.observability.health import (
    DEGRADED,
    HEALTHY,
    UNHEALTHY,
    UNKNOWN,
    ComponentHealth,
    SystemHealth,
    check_entrypoint,
    check_install_health,
    check_port,
    check_service,
)
from carclaw_installer.core.observability.logging_config import (
    parse_level,
    resolve_level,
    setup_from_environment,
    setup_logging,
)

# ── SystemHealth ─────────────────────────────────────────────────────


class TestSystemHealth:
    def test_empty_is_healthy(self):
        assert SystemHealth().status == HEALTHY

    def test_worst_status_wins(self):
        health = SystemHealth()
        health.add(ComponentHealth("a", HEALTHY))
        health.add(ComponentHealth("b", DEGRADED))
        assert health.status == DEGRADED
        health.add(ComponentHealth("c", UNHEALTHY))
        assert health.failed

    def test_unknown_component(self):
        health = SystemHealth()
        health.add(ComponentHealth("a", HEALTHY))
        health.add(ComponentHealth("b", UNKNOWN))
        assert health.status == UNKNOWN
        assert not health.failed

    def test_to_dict_and_get(self):
        health = SystemHealth()
        health.add(ComponentHealth("port", HEALTHY, "Port 3100 available"))
        d = health.to_dict()
        assert d["components"][0]["message"] == "Port 3100 available"
        assert health.get("port").status == HEALTHY
        assert health.get("nope") is None


# ── Checks ───────────────────────────────────────────────────────────


def _checkout(install_dir: Path) -> None:
    install_dir.mkdir(parents=True, exist_ok=True)
    (install_dir / "server.js").write_text("console.log('ok')\n")


class TestEntrypoint:
    def test_missing_entrypoint(self, debian_ctx):
        result = check_entrypoint(debian_ctx)
        assert result.status == UNHEALTHY
        assert "not found" in result.message

    def test_missing_node(self, debian_ctx, install_dir: Path):
        _checkout(install_dir)
        assert check_entrypoint(debian_ctx).message == "node not found"

    def test_syntax_ok(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        _checkout(install_dir)
        debian_host.install_node()
        result = check_entrypoint(debian_ctx)
        assert result.status == HEALTHY
        call = debian_host.runner.calls_to(debian_host.node_path, "--check")[0]
        assert call.cwd == str(install_dir)

    def test_syntax_error(self, debian_host: FakeHost, debian_ctx, install_dir: Path):
        _checkout(install_dir)
        debian_host.install_node()
        debian_host.runner.on(debian_host.node_path, "--check", returncode=1, stderr="SyntaxError: Unexpected token")
        result = check_entrypoint(debian_ctx)
        assert result.status == UNHEALTHY
        assert "SyntaxError" in result.details["output"]


class TestPort:
    def test_free_port(self, monkeypatch):
        monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: False)
        assert check_port(3100).status == HEALTHY

    def test_busy_port_degrades(self, monkeypatch):
        monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: True)
        assert check_port(3100).status == DEGRADED

    def test_busy_port_served_by_bridge(self, monkeypatch):
        monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: True)
        assert check_port(3100, service_running=True).status == HEALTHY

    def test_real_listener_detected(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]
            assert check_port(port).status == DEGRADED


class TestService:
    def test_not_registered(self, debian_ctx):
        assert check_service(debian_ctx).status == UNKNOWN

    def test_running(self, debian_host: FakeHost, debian_ctx):
        debian_host.unit_dir.mkdir(parents=True)
        (debian_host.unit_dir / "carclaw-bridge.service").write_text("[Unit]\n")
        debian_host.running.add("carclaw-bridge")
        result = check_service(debian_ctx)
        assert result.status == HEALTHY
        assert result.details["status"] == "running"


class TestInstallHealth:
    def test_bridge_components(self, debian_host: FakeHost, debian_ctx, install_dir: Path, monkeypatch):
        monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: False)
        _checkout(install_dir)
        debian_host.install_node()
        health = check_install_health(debian_ctx)
        assert [c.name for c in health.components] == ["entrypoint", "port", "service"]
        assert not health.failed

    def test_broken_checkout_fails(self, debian_ctx, monkeypatch):
        monkeypatch.setattr("carclaw_installer.core.observability.health.port_in_use", lambda port: False)
        assert check_install_health(debian_ctx).failed


# ── Logging ──────────────────────────────────────────────────────────


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogging:
    def test_parse_level(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level("nonsense") == logging.WARNING
        assert parse_level(None) == logging.WARNING

    def test_resolve_level_flags_win(self, monkeypatch):
        monkeypatch.setenv("CARCLAW_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level() == "ERROR"

    def test_resolve_level_default(self, monkeypatch):
        monkeypatch.delenv("CARCLAW_LOG_LEVEL", raising=False)
        assert resolve_level() == "WARNING"
        assert resolve_level(quiet=True) == "ERROR"

    def test_console_handler(self, restore_logging):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_file_handler(self, tmp_path: Path, restore_logging):
        log_file = tmp_path / "logs" / "installer.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("carclaw_installer.test").debug("detail for the file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "detail for the file" in log_file.read_text()
        assert logging.getLogger().level == logging.DEBUG

    def test_from_environment(self, tmp_path: Path, monkeypatch, restore_logging):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("CARCLAW_LOG_FILE", str(log_file))
        monkeypatch.setenv("CARCLAW_LOG_FILE_LEVEL", "INFO")
        setup_from_environment()
        assert any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)
