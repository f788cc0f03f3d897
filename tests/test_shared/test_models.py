"""Tests for the shared Pydantic models."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.shared.models.common import HealthStatus, MockEndpointSummary
from src.shared.models.rest_spec import (
    CreateRestApiRequest,
    Parameter,
    RenamedItem,
    SchemaProperty,
)
from src.shared.models.websocket_spec import CreateOperationRequest


class TestHealthStatus:
    def test_defaults(self):
        status = HealthStatus(service_name="spec-engine", version="1.0.0", uptime_seconds=1.0)
        assert status.status == "healthy"
        assert status.rest_spec == "present"
        assert status.mock_endpoints == 0

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            HealthStatus(service_name="s", version="1", uptime_seconds=0, status="sleepy")


class TestRestModels:
    """Tests for REST authoring models."""

    def test_method_pattern_case_insensitive(self):
        request = CreateRestApiRequest(path="/users", method="Post")
        assert request.method == "Post"
        with pytest.raises(ValidationError):
            CreateRestApiRequest(path="/users", method="fetch")

    def test_empty_path_rejected(self):
        with pytest.raises(ValidationError):
            CreateRestApiRequest(path="", method="get")

    def test_parameter_alias(self):
        param = Parameter.model_validate({"name": "id", "in": "path", "required": True})
        assert param.in_ == "path"
        assert param.model_dump(by_alias=True)["in"] == "path"
        with pytest.raises(ValidationError):
            Parameter.model_validate({"name": "id", "in": "body"})

    def test_nested_schema_property(self):
        prop = SchemaProperty.model_validate(
            {"type": "array", "items": {"type": "object", "properties": {"n": {"type": "integer"}}}}
        )
        assert prop.items.properties["n"].type == "integer"

    def test_renamed_item_type(self):
        assert RenamedItem(type="api", original="/a", renamed="/a-import").method is None
        with pytest.raises(ValidationError):
            RenamedItem(type="widget", original="a", renamed="b")


class TestWebSocketModels:
    def test_protocol_restricted(self):
        with pytest.raises(ValidationError):
            CreateOperationRequest(protocol="http", pathname="/ws")

    def test_pathname_required(self):
        with pytest.raises(ValidationError):
            CreateOperationRequest(protocol="ws", pathname="")


class TestMockEndpointSummary:
    def test_lists_default_empty(self):
        summary = MockEndpointSummary(method="GET", path="/users")
        assert summary.statuses == []
        assert summary.auth_headers == []
