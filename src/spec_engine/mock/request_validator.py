"""Checks incoming mock requests against the endpoint's declared contract.

Checks run in a fixed order and stop at the first failure:
forced error header, auth headers, required headers, required query
parameters, then the request body.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, UnknownType
from starlette.datastructures import FormData

from src.shared.constants import MOCK_ERROR_HEADER
from src.spec_engine.mock.registry import EndpointMeta

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
FORCED_ERROR_MESSAGE = "Forced error response via X-Ouroboros-Error header"

_JSON_TYPE_NAMES = {
    dict: "object",
    list: "array",
    str: "string",
    bool: "boolean",
    int: "integer",
    float: "number",
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    status_code: int = 200
    message: str | None = None
    forced: bool = False

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def error(cls, status_code: int, message: str, forced: bool = False) -> "ValidationResult":
        return cls(valid=False, status_code=status_code, message=message, forced=forced)


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    return _JSON_TYPE_NAMES.get(type(value), type(value).__name__)


def _field_path(parts: Any) -> str:
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def schema_errors(body: Any, schema: dict[str, Any]) -> list[str]:
    """Readable messages for every required/type violation of *body*.

    Only ``required`` and ``type`` findings are reported; other keywords
    (formats, bounds, patterns) are not enforced by the mock server.
    A schema the validator cannot use yields no messages.
    """
    try:
        Draft202012Validator.check_schema(schema)
        validator = Draft202012Validator(schema)
        errors = sorted(
            validator.iter_errors(body), key=lambda e: [str(p) for p in e.absolute_path]
        )
    except (SchemaError, UnknownType) as exc:
        logger.warning("Request body schema is invalid; body not validated: %s", exc)
        return []
    messages: list[str] = []
    for error in errors:
        if error.validator == "required":
            instance = error.instance if isinstance(error.instance, dict) else {}
            for name in error.validator_value:
                if name not in instance:
                    path = _field_path([*error.absolute_path, name])
                    messages.append(f"Missing required field: {path}")
        elif error.validator == "type":
            if error.instance is None:
                continue
            expected = error.validator_value
            if isinstance(expected, list):
                expected = "|".join(expected)
            messages.append(
                "Field '%s' has invalid type. Expected: %s, Got: %s"
                % (_field_path(error.absolute_path) or "body", expected, json_type_name(error.instance))
            )
    return messages


def is_urlencoded(content_type: str | None) -> bool:
    return "application/x-www-form-urlencoded" in (content_type or "").lower()


def form_to_body(form: FormData) -> dict[str, Any]:
    """Single values stay scalars; repeated keys become lists."""
    body: dict[str, Any] = {}
    for key in form.keys():
        values = [v if isinstance(v, str) else v.filename for v in form.getlist(key)]
        body[key] = values[0] if len(values) == 1 else values
    return body


def parse_body(
    raw: bytes, content_type: str | None, form: dict[str, Any] | None = None
) -> tuple[bool, Any]:
    """Decode a request body.

    Args:
        raw: Undecoded body; unused for url-encoded forms.
        content_type: Request ``Content-Type``.
        form: Fields of an already parsed url-encoded form.

    Returns:
        ``(ok, body)``. ``ok`` is False only when a JSON body cannot be parsed.
        Empty bodies decode to None.
    """
    media = (content_type or "").lower()
    if is_urlencoded(media):
        return True, form or None
    if not raw or not raw.strip():
        return True, None
    if "multipart/form-data" in media:
        return True, {"_multipart": True}
    if media and "json" not in media:
        return True, raw.decode("utf-8", errors="replace")
    try:
        return True, json.loads(raw)
    except ValueError:
        return False, None


def forced_status(headers: Mapping[str, str]) -> int | None:
    value = headers.get(MOCK_ERROR_HEADER)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.warning("Invalid %s header value: %s", MOCK_ERROR_HEADER, value)
        return None


def validate_request(
    meta: EndpointMeta,
    method: str,
    headers: Mapping[str, str],
    query: Mapping[str, str],
    raw_body: bytes,
    content_type: str | None,
    form: dict[str, Any] | None = None,
) -> tuple[ValidationResult, Any]:
    """Run the mock validation chain.

    Args:
        meta: Endpoint being called.
        method: Request method.
        headers: Case-insensitive request headers.
        query: Query parameters.
        raw_body: Undecoded request body.
        content_type: Request ``Content-Type``.
        form: Parsed url-encoded form fields, when the body is a form.

    Returns:
        The first failing result (or success) and the decoded body.
    """
    code = forced_status(headers)
    if code is not None:
        if code in meta.responses:
            return ValidationResult.error(code, FORCED_ERROR_MESSAGE, forced=True), None
        logger.warning("Forced status %d is not declared for %s; ignored", code, meta.key)

    for header in meta.auth_headers:
        if header not in headers:
            return ValidationResult.error(401, "Authentication required."), None

    for header in meta.required_headers:
        if header not in headers:
            return ValidationResult.error(400, f"Missing required header: {header}"), None

    for param in meta.required_params:
        if param not in query:
            return ValidationResult.error(400, f"Missing required parameter: {param}"), None

    if method.upper() not in BODY_METHODS:
        return ValidationResult.success(), None

    ok, body = parse_body(raw_body, content_type, form)
    if not ok:
        return ValidationResult.error(400, "Invalid JSON format in request body"), None
    if meta.request_body_required and (body is None or body == {} or body == ""):
        return ValidationResult.error(400, "Request body is required but missing"), body
    is_json = not content_type or "json" in content_type.lower()
    if body is not None and is_json and meta.request_body_schema:
        problems = schema_errors(body, meta.request_body_schema)
        if problems:
            return ValidationResult.error(400, problems[0]), body
    return ValidationResult.success(), body
