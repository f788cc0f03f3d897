"""Serves mock responses for endpoints still in ``mock`` progress."""
from __future__ import annotations

import logging
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from src.spec_engine.mock.mock_builder import build_mock, deep_merge, serialize
from src.spec_engine.mock.registry import EndpointMeta, MockRegistry, ResponseMeta
from src.spec_engine.mock.request_validator import (
    BODY_METHODS,
    form_to_body,
    is_urlencoded,
    validate_request,
)
from src.spec_engine.services.spec_scanner import CONTROL_PREFIX

logger = logging.getLogger(__name__)

_PREFERRED_STATUSES = (200, 201, 204)


def select_response(responses: dict[int, ResponseMeta]) -> ResponseMeta | None:
    """200, then 201, then 204, then any 2xx, then the first declared response."""
    for status in _PREFERRED_STATUSES:
        if status in responses:
            return responses[status]
    for status, response in responses.items():
        if 200 <= status < 300:
            return response
    return next(iter(responses.values()), None)


def response_content_type(response: ResponseMeta, accept: str | None) -> str:
    if response.content_type:
        return response.content_type
    if accept and "xml" in accept.lower():
        return "application/xml"
    return "application/json"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


class MockMiddleware(BaseHTTPMiddleware):
    """Answers registered mock endpoints; every other request passes through.

    Requests under the control prefix are never mocked.
    """

    def __init__(self, app: ASGIApp, registry: MockRegistry, enabled: bool = True) -> None:
        super().__init__(app)
        self._registry = registry
        self._enabled = enabled

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        path = request.url.path
        if not self._enabled or path == CONTROL_PREFIX or path.startswith(CONTROL_PREFIX + "/"):
            return await call_next(request)

        meta = self._registry.find(path, request.method)
        if meta is None:
            return await call_next(request)

        try:
            raw_body, form = await self._read_body(request)
            result, body = validate_request(
                meta,
                request.method,
                request.headers,
                request.query_params,
                raw_body,
                request.headers.get("content-type"),
                form,
            )
            if not result.valid:
                if result.forced:
                    return self._forced_response(meta, result.status_code, result.message, request)
                logger.info(
                    "Mock validation failed: %s %s status=%d reason=%s",
                    request.method, path, result.status_code, result.message,
                )
                return _error(result.status_code, result.message or "Invalid request")
            return self._mock_response(meta, request, body)
        except Exception:
            logger.exception("Failed to generate mock response: %s %s", request.method, path)
            return _error(500, "Failed to generate mock response")

    @staticmethod
    async def _read_body(request: Request) -> tuple[bytes, dict[str, Any] | None]:
        if request.method.upper() not in BODY_METHODS:
            return b"", None
        if is_urlencoded(request.headers.get("content-type")):
            return b"", form_to_body(await request.form())
        return await request.body(), None

    def _forced_response(
        self, meta: EndpointMeta, status_code: int, message: str | None, request: Request
    ) -> Response:
        declared = meta.responses[status_code]
        if declared.schema is None:
            return JSONResponse(
                status_code=status_code, content={"error": message}, headers=declared.headers
            )
        try:
            return self._render(declared, build_mock(declared.schema), request)
        except Exception:
            logger.exception("Failed to generate forced mock response: %s", meta.key)
            return _error(500, "Failed to generate mock response")

    def _mock_response(self, meta: EndpointMeta, request: Request, request_body: Any) -> Response:
        response = select_response(meta.responses)
        if response is None:
            return _error(500, f"No response definition found for {meta.path}")

        body = build_mock(response.schema) if response.schema is not None else None
        if (
            request.method.upper() in BODY_METHODS
            and isinstance(request_body, dict)
            and isinstance(body, dict)
        ):
            body = deep_merge(body, request_body)
        return self._render(response, body, request)

    @staticmethod
    def _render(response: ResponseMeta, body: Any, request: Request) -> Response:
        headers = dict(response.headers)
        if body is None or response.status_code == 204:
            return Response(status_code=response.status_code, headers=headers)
        content_type = response_content_type(response, request.headers.get("accept"))
        return Response(
            content=serialize(body, content_type, response.schema),
            status_code=response.status_code,
            media_type=content_type,
            headers=headers,
        )
