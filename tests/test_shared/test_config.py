"""Tests for configuration management."""
from __future__ import annotations

from pathlib import Path

import pytest

from src.shared.config import SharedConfig, SpecEngineConfig


class TestSharedConfig:
    def test_default_values(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        config = SharedConfig()
        assert config.log_level == "info"

    def test_env_override_log_level(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = SharedConfig()
        assert config.log_level == "debug"


class TestSpecEngineConfig:
    """Tests for SpecEngineConfig."""

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch: pytest.MonkeyPatch):
        for name in (
            "OUROBOROS_SPEC_DIR",
            "OUROBOROS_SERVER_URL",
            "OUROBOROS_SCAN_URL",
            "OUROBOROS_WS_SCAN_URL",
            "OUROBOROS_MOCK_ENABLED",
            "OUROBOROS_SCAN_TIMEOUT",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_default_values(self):
        config = SpecEngineConfig()
        assert config.spec_base_dir == "./"
        assert config.server_url == "http://localhost:8080"
        assert config.scan_url == ""
        assert config.mock_enabled is True

    def test_spec_paths(self):
        config = SpecEngineConfig(spec_base_dir="/srv/app")
        assert config.rest_spec_path == Path("/srv/app/ouroboros/rest/ourorest.yml")
        assert config.websocket_spec_path == Path("/srv/app/ouroboros/websocket/ourowebsocket.yml")

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("OUROBOROS_SPEC_DIR", "/data")
        monkeypatch.setenv("OUROBOROS_MOCK_ENABLED", "false")
        monkeypatch.setenv("OUROBOROS_SCAN_TIMEOUT", "1.5")
        config = SpecEngineConfig()
        assert config.spec_base_dir == "/data"
        assert config.mock_enabled is False
        assert config.scan_timeout == 1.5

    def test_inherits_shared_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert SpecEngineConfig().log_level == "info"
