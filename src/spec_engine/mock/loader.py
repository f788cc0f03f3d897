"""Builds the mock endpoint table from the REST spec file."""
from __future__ import annotations

import logging
from typing import Any

from src.shared.constants import HTTP_METHODS, X_ID, X_PROGRESS
from src.spec_engine.mock.registry import EndpointMeta, ResponseMeta, endpoint_key
from src.spec_engine.services.schema_resolver import resolve_schema
from src.spec_engine.services.yaml_store import RestDocumentStore

logger = logging.getLogger(__name__)

_PREFERRED_MEDIA_TYPES = ("application/json", "application/xml")
_BEARER_LIKE = frozenset({"http", "oauth2", "openIdConnect"})


def auth_headers_for(
    security: Any, security_schemes: dict[str, Any]
) -> tuple[str, ...]:
    """Headers a caller must send to satisfy the declared security requirements."""
    headers: list[str] = []
    if not isinstance(security, list):
        return ()
    for requirement in security:
        if not isinstance(requirement, dict):
            continue
        for scheme_name in requirement:
            scheme = security_schemes.get(scheme_name) or {}
            scheme_type = scheme.get("type")
            if scheme_type in _BEARER_LIKE:
                header = "Authorization"
            elif scheme_type == "apiKey" and scheme.get("in") == "header" and scheme.get("name"):
                header = scheme["name"]
            else:
                continue
            if header not in headers:
                headers.append(header)
    return tuple(headers)


def _pick_media(content: dict[str, Any]) -> tuple[str | None, dict[str, Any] | None]:
    for media_type in _PREFERRED_MEDIA_TYPES:
        media = content.get(media_type)
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media_type, media["schema"]
    for media_type, media in content.items():
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media_type, media["schema"]
    return None, None


def parse_response(
    status_code: int, response: Any, schemas: dict[str, Any]
) -> ResponseMeta:
    if not isinstance(response, dict):
        return ResponseMeta(status_code=status_code)
    headers: dict[str, str] = {}
    for name, header in (response.get("headers") or {}).items():
        if isinstance(header, dict):
            example = header.get("example")
            if example is None:
                example = (header.get("schema") or {}).get("example")
            if example is not None:
                headers[name] = str(example)
    content = response.get("content")
    if not isinstance(content, dict) or not content:
        return ResponseMeta(status_code=status_code, headers=headers)
    media_type, schema = _pick_media(content)
    if schema is None:
        return ResponseMeta(status_code=status_code, content_type=media_type, headers=headers)
    return ResponseMeta(
        status_code=status_code,
        schema=resolve_schema(schema, schemas),
        content_type=media_type,
        headers=headers,
    )


def parse_operation(
    path: str,
    method: str,
    operation: dict[str, Any],
    schemas: dict[str, Any],
    security_schemes: dict[str, Any],
    default_security: Any = None,
) -> EndpointMeta | None:
    """Endpoint metadata for an operation still in ``mock`` progress, else None."""
    progress = operation.get(X_PROGRESS)
    if not isinstance(progress, str) or progress.lower() != "mock":
        return None

    required_headers: list[str] = []
    required_params: list[str] = []
    for param in operation.get("parameters") or []:
        if not isinstance(param, dict) or param.get("required") is not True:
            continue
        if param.get("in") == "header":
            required_headers.append(param.get("name"))
        elif param.get("in") == "query":
            required_params.append(param.get("name"))

    security = operation.get("security")
    if security is None:
        security = default_security

    body_required = False
    body_schema = None
    body_type = None
    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        body_required = request_body.get("required") is True
        content = request_body.get("content")
        if isinstance(content, dict):
            body_type, schema = _pick_media(content)
            if schema is not None:
                body_schema = resolve_schema(schema, schemas)

    responses: dict[int, ResponseMeta] = {}
    for status, response in (operation.get("responses") or {}).items():
        try:
            code = int(status)
        except (TypeError, ValueError):
            logger.debug("Skipping non-numeric response code: %s %s %s", method, path, status)
            continue
        responses[code] = parse_response(code, response, schemas)

    return EndpointMeta(
        id=operation.get(X_ID),
        path=path,
        method=method.upper(),
        auth_headers=auth_headers_for(security, security_schemes),
        required_headers=tuple(h for h in required_headers if h),
        required_params=tuple(p for p in required_params if p),
        request_body_required=body_required,
        request_body_schema=body_schema,
        request_content_type=body_type,
        responses=responses,
    )


class MockLoader:
    """Reads the REST spec and returns the endpoints that should be mocked."""

    def __init__(self, store: RestDocumentStore) -> None:
        self._store = store

    def load(self) -> dict[str, EndpointMeta]:
        try:
            if not self._store.file_exists():
                logger.info("No REST spec file; mock registry left empty")
                return {}
            document = self._store.read_document()
            return self.load_document(document)
        except Exception:
            logger.exception("Failed to load mock endpoints from %s", self._store.path)
            return {}

    @staticmethod
    def load_document(document: dict[str, Any]) -> dict[str, EndpointMeta]:
        components = document.get("components") or {}
        schemas = components.get("schemas") or {}
        security_schemes = components.get("securitySchemes") or {}
        default_security = document.get("security")

        endpoints: dict[str, EndpointMeta] = {}
        for path, item in (document.get("paths") or {}).items():
            if not isinstance(item, dict):
                continue
            for method, operation in item.items():
                method = str(method).lower()
                if method not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                meta = parse_operation(
                    path, method, operation, schemas, security_schemes, default_security
                )
                if meta is not None:
                    endpoints[endpoint_key(method, path)] = meta
        logger.info("Mock endpoints parsed: count=%d", len(endpoints))
        return endpoints
