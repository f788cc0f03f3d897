"""Tests for obtaining the scanned spec."""
from __future__ import annotations

import httpx
import pytest

from src.spec_engine.services import spec_scanner
from src.spec_engine.services.spec_scanner import (
    ApiState,
    SpecScanner,
    api_state,
    normalize_scanned_rest,
)


def _openapi() -> dict:
    return {
        "openapi": "3.1.0",
        "paths": {
            "/ouro/health": {"get": {"responses": {}}},
            "/users": {
                "post": {
                    "responses": {
                        "200": {"description": "ok"},
                        "422": {
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/HTTPValidationError"}
                                }
                            }
                        },
                    }
                }
            },
        },
        "components": {"schemas": {"HTTPValidationError": {}, "ValidationError": {}, "User": {}}},
    }


class TestApiState:
    def test_states(self):
        assert api_state(ApiState.IMPLEMENTING) == {
            "x-ouroboros-progress": "mock",
            "x-ouroboros-tag": "implementing",
        }
        assert api_state("BUG_FIXING")["x-ouroboros-tag"] == "bugfix"
        completed = api_state(ApiState.COMPLETED, owner="kim", response=True)
        assert completed["x-ouroboros-progress"] == "completed"
        assert completed["x-ouroboros-owner"] == "kim"
        assert completed["x-ouroboros-response"] == "use"

    def test_unknown_state(self):
        with pytest.raises(ValueError):
            api_state("SHIPPED")


class TestNormalize:
    def test_control_paths_and_validation_errors_removed(self):
        document = normalize_scanned_rest(_openapi())
        assert list(document["paths"]) == ["/users"]
        assert list(document["paths"]["/users"]["post"]["responses"]) == ["200"]
        assert list(document["components"]["schemas"]) == ["User"]


class TestSpecScanner:
    """Tests for SpecScanner."""

    def test_in_process_provider(self):
        scanner = SpecScanner(openapi_provider=_openapi)
        assert list(scanner.scan_rest()["paths"]) == ["/users"]

    def test_provider_failure(self):
        def broken():
            raise RuntimeError("boom")

        assert SpecScanner(openapi_provider=broken).scan_rest() is None

    def test_nothing_configured(self):
        scanner = SpecScanner()
        assert scanner.scan_rest() is None
        assert scanner.scan_websocket() is None

    def test_fetch_json(self, monkeypatch: pytest.MonkeyPatch):
        def fake_get(url, timeout):
            return httpx.Response(200, json=_openapi(), request=httpx.Request("GET", url))

        monkeypatch.setattr(spec_scanner.httpx, "get", fake_get)
        scanner = SpecScanner(rest_url="http://app/openapi.json")
        assert list(scanner.scan_rest()["paths"]) == ["/users"]

    def test_fetch_yaml(self, monkeypatch: pytest.MonkeyPatch):
        def fake_get(url, timeout):
            return httpx.Response(
                200,
                text="asyncapi: 3.0.0\noperations: {}\n",
                headers={"content-type": "application/yaml"},
                request=httpx.Request("GET", url),
            )

        monkeypatch.setattr(spec_scanner.httpx, "get", fake_get)
        scanned = SpecScanner(websocket_url="http://app/asyncapi.yaml").scan_websocket()
        assert scanned == {"asyncapi": "3.0.0", "operations": {}}

    def test_fetch_failure(self, monkeypatch: pytest.MonkeyPatch):
        def fake_get(url, timeout):
            return httpx.Response(500, request=httpx.Request("GET", url))

        monkeypatch.setattr(spec_scanner.httpx, "get", fake_get)
        assert SpecScanner(rest_url="http://app/openapi.json").scan_rest() is None
