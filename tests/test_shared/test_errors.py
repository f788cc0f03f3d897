"""Tests for shared error classes and exception handlers."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.shared.errors import (
    AppError,
    ConflictError,
    ImportValidationError,
    NotFoundError,
    ParsingError,
    ValidationError,
    register_exception_handlers,
)
from src.shared.models.rest_spec import ImportValidationErrorData


class TestAppError:
    """Tests for the base AppError exception."""

    def test_default_status_code(self):
        err = AppError(detail="something broke")
        assert err.status_code == 500
        assert err.detail == "something broke"

    def test_str_is_detail(self):
        assert str(AppError(detail="human readable")) == "human readable"


class TestSubclasses:
    @pytest.mark.parametrize(
        "cls, status, detail",
        [
            (ValidationError, 422, "Validation error"),
            (NotFoundError, 404, "Resource not found"),
            (ConflictError, 409, "Conflict"),
            (ParsingError, 400, "Parsing error"),
        ],
    )
    def test_defaults(self, cls, status, detail):
        err = cls()
        assert isinstance(err, AppError)
        assert err.status_code == status
        assert err.detail == detail

    def test_not_found_keeps_name(self):
        err = NotFoundError("Schema 'com.acme.User' not found", name="com.acme.User")
        assert err.name == "com.acme.User"

    def test_import_validation_error(self):
        errors = [ImportValidationErrorData(location="info", error_code="X", message="m")]
        err = ImportValidationError(errors)
        assert err.status_code == 400
        assert err.errors == errors


@pytest.fixture
def app_client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/not-found")
    async def not_found():
        raise NotFoundError("User not found")

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Duplicate")

    @app.get("/import")
    async def bad_import():
        raise ImportValidationError(
            [ImportValidationErrorData(location="openapi", error_code="UNSUPPORTED_VERSION", message="m")]
        )

    return TestClient(app)


class TestExceptionHandlers:
    """Errors are rendered as JSON with their status code."""

    def test_app_errors(self, app_client):
        response = app_client.get("/not-found")
        assert response.status_code == 404
        assert response.json() == {"detail": "User not found"}
        assert app_client.get("/conflict").status_code == 409

    def test_import_errors_listed(self, app_client):
        response = app_client.get("/import")
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "YAML validation failed"
        assert body["errors"] == [
            {"location": "openapi", "error_code": "UNSUPPORTED_VERSION", "message": "m"}
        ]
