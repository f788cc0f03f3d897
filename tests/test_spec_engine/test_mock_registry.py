"""Tests for the mock registry and the loader that fills it."""
from __future__ import annotations

import threading

from src.spec_engine.mock.loader import MockLoader, auth_headers_for
from src.spec_engine.mock.registry import EndpointMeta, MockRegistry, match_template


def _meta(method: str, path: str) -> EndpointMeta:
    return EndpointMeta(id=f"{method}{path}", path=path, method=method)


class TestMatchTemplate:
    def test_parameter_matches_one_segment(self):
        assert match_template("/users/{id}", "/users/42") == 1
        assert match_template("/users/{id}", "/users/42/posts") is None
        assert match_template("/users/{id}", "/users") is None

    def test_literal_mismatch(self):
        assert match_template("/users/{id}", "/teams/42") is None


class TestMockRegistry:
    """Tests for MockRegistry."""

    def test_exact_match(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/users"))
        assert registry.find("/users", "get").path == "/users"
        assert registry.find("/users", "POST") is None

    def test_trailing_slash_matches_exact_entry(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/users"))
        registry.register(_meta("GET", "/{resource}"))
        assert registry.find("/users/", "GET").path == "/users"
        assert registry.find("/users", "GET").path == "/users"

    def test_template_match(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/users/{id}/posts/{postId}"))
        found = registry.find("/users/7/posts/9", "GET")
        assert found is not None and found.path == "/users/{id}/posts/{postId}"

    def test_literal_segments_win(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/users/{id}"))
        registry.register(_meta("GET", "/users/me"))
        registry.register(_meta("GET", "/{kind}/{id}"))
        assert registry.find("/users/me", "GET").path == "/users/me"
        assert registry.find("/users/42", "GET").path == "/users/{id}"
        assert registry.find("/teams/42", "GET").path == "/{kind}/{id}"

    def test_reload_replaces_table(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/old"))
        count = registry.reload({"GET:/new": _meta("GET", "/new")})
        assert count == 1
        assert registry.find("/old", "GET") is None
        assert len(registry) == 1

    def test_clear(self):
        registry = MockRegistry()
        registry.register(_meta("GET", "/a"))
        registry.clear()
        assert registry.all() == []

    def test_concurrent_register(self):
        registry = MockRegistry()
        threads = [
            threading.Thread(target=registry.register, args=(_meta("GET", f"/r{i}"),))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 20


class TestAuthHeaders:
    def test_scheme_kinds(self):
        schemes = {
            "bearerAuth": {"type": "http", "scheme": "bearer"},
            "oauth": {"type": "oauth2"},
            "apiKey": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
            "cookieKey": {"type": "apiKey", "in": "cookie", "name": "session"},
        }
        security = [{"bearerAuth": []}, {"oauth": []}, {"apiKey": []}, {"cookieKey": []}]
        assert auth_headers_for(security, schemes) == ("Authorization", "X-API-Key")

    def test_no_security(self):
        assert auth_headers_for(None, {}) == ()


def _document():
    return {
        "openapi": "3.1.0",
        "security": [{"bearerAuth": []}],
        "paths": {
            "/users/{id}": {
                "get": {
                    "x-ouroboros-id": "get-user",
                    "x-ouroboros-progress": "MOCK",
                    "parameters": [
                        {"name": "X-Tenant", "in": "header", "required": True},
                        {"name": "verbose", "in": "query", "required": True},
                        {"name": "expand", "in": "query", "required": False},
                    ],
                    "responses": {
                        "200": {
                            "headers": {"X-Rate-Limit": {"schema": {"type": "integer", "example": 100}}},
                            "content": {
                                "application/json": {"schema": {"$ref": "#/components/schemas/User"}}
                            },
                        },
                        "404": {"description": "missing"},
                        "default": {"description": "ignored"},
                    },
                },
                "delete": {
                    "x-ouroboros-id": "delete-user",
                    "x-ouroboros-progress": "completed",
                    "responses": {"204": {"description": "gone"}},
                },
            },
            "/public": {
                "get": {
                    "x-ouroboros-progress": "mock",
                    "security": [],
                    "responses": {"200": {"description": "ok"}},
                }
            },
        },
        "components": {
            "schemas": {
                "User": {"type": "object", "properties": {"name": {"type": "string"}}},
            },
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer"}},
        },
    }


class TestMockLoader:
    """Tests for MockLoader."""

    def test_only_mock_operations_loaded(self):
        endpoints = MockLoader.load_document(_document())
        assert set(endpoints) == {"GET:/users/{id}", "GET:/public"}

    def test_operation_metadata(self):
        meta = MockLoader.load_document(_document())["GET:/users/{id}"]
        assert meta.id == "get-user"
        assert meta.required_headers == ("X-Tenant",)
        assert meta.required_params == ("verbose",)
        assert meta.auth_headers == ("Authorization",)

    def test_responses_resolved(self):
        meta = MockLoader.load_document(_document())["GET:/users/{id}"]
        assert set(meta.responses) == {200, 404}
        ok = meta.responses[200]
        assert ok.content_type == "application/json"
        assert ok.schema["properties"]["name"] == {"type": "string"}
        assert ok.headers == {"X-Rate-Limit": "100"}
        assert meta.responses[404].schema is None

    def test_operation_security_overrides_document(self):
        meta = MockLoader.load_document(_document())["GET:/public"]
        assert meta.auth_headers == ()

    def test_missing_file_yields_empty(self, rest_store):
        assert MockLoader(rest_store).load() == {}

    def test_broken_file_yields_empty(self, rest_store):
        rest_store.path.parent.mkdir(parents=True, exist_ok=True)
        rest_store.path.write_text("paths: [broken\n", encoding="utf-8")
        assert MockLoader(rest_store).load() == {}

    def test_load_from_file(self, rest_store):
        rest_store.write_document(_document())
        assert len(MockLoader(rest_store).load()) == 2
