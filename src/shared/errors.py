"""Custom exception classes and FastAPI exception handlers."""
from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str, status_code: int = 500) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ValidationError(AppError):
    """Validation error (422)."""

    def __init__(self, detail: str = "Validation error") -> None:
        super().__init__(detail=detail, status_code=422)


class NotFoundError(AppError):
    """Resource not found (404).

    ``name`` keeps the identifier the caller looked for so that callers can
    retry with a normalised name before giving up.
    """

    def __init__(self, detail: str = "Resource not found", name: str | None = None) -> None:
        self.name = name
        super().__init__(detail=detail, status_code=404)


class ConflictError(AppError):
    """Conflict error (409)."""

    def __init__(self, detail: str = "Conflict") -> None:
        super().__init__(detail=detail, status_code=409)


class ParsingError(AppError):
    """Parsing error (400)."""

    def __init__(self, detail: str = "Parsing error") -> None:
        super().__init__(detail=detail, status_code=400)


class ImportValidationError(AppError):
    """Import rejected because the uploaded document failed validation (400)."""

    def __init__(self, errors: list[Any], detail: str = "YAML validation failed") -> None:
        self.errors = errors
        super().__init__(detail=detail, status_code=400)


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers with a FastAPI app."""

    @app.exception_handler(ImportValidationError)
    async def import_error_handler(request: Request, exc: ImportValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "errors": [
                    e.model_dump() if hasattr(e, "model_dump") else e for e in exc.errors
                ],
            },
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )
