"""Common Pydantic v2 data models shared across services."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    """Health status of a service."""
    status: str = Field(
        default="healthy",
        pattern=r"^(healthy|degraded|unhealthy)$"
    )
    service_name: str
    version: str
    rest_spec: str = Field(
        default="present",
        pattern=r"^(present|missing)$"
    )
    websocket_spec: str = Field(
        default="present",
        pattern=r"^(present|missing)$"
    )
    mock_endpoints: int = 0
    uptime_seconds: float
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class MockEndpointSummary(BaseModel):
    """One registered mock endpoint."""
    id: str | None = None
    method: str
    path: str
    statuses: list[int] = Field(default_factory=list)
    auth_headers: list[str] = Field(default_factory=list)
    required_headers: list[str] = Field(default_factory=list)
    required_params: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class MockReloadResponse(BaseModel):
    endpoints: int

    model_config = {"from_attributes": True}
