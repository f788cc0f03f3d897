"""Shared configuration management using pydantic-settings."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import REST_SPEC_FILE, WEBSOCKET_SPEC_FILE


class SharedConfig(BaseSettings):
    """Base configuration shared across all services."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class SpecEngineConfig(SharedConfig):
    """Configuration for the Spec Engine service."""
    spec_base_dir: str = Field(default="./", validation_alias="OUROBOROS_SPEC_DIR")
    server_url: str = Field(
        default="http://localhost:8080", validation_alias="OUROBOROS_SERVER_URL"
    )
    server_description: str = Field(
        default="Local Server", validation_alias="OUROBOROS_SERVER_DESCRIPTION"
    )
    # Empty means the scanned spec is taken from the running app in-process.
    scan_url: str = Field(default="", validation_alias="OUROBOROS_SCAN_URL")
    websocket_scan_url: str = Field(default="", validation_alias="OUROBOROS_WS_SCAN_URL")
    scan_timeout: float = Field(default=5.0, validation_alias="OUROBOROS_SCAN_TIMEOUT")
    mock_enabled: bool = Field(default=True, validation_alias="OUROBOROS_MOCK_ENABLED")

    @property
    def rest_spec_path(self) -> Path:
        return Path(self.spec_base_dir) / REST_SPEC_FILE

    @property
    def websocket_spec_path(self) -> Path:
        return Path(self.spec_base_dir) / WEBSOCKET_SPEC_FILE
