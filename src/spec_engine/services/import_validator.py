"""Validation of uploaded OpenAPI and AsyncAPI YAML documents before import.

Every problem is collected and reported in one batch; nothing is imported
unless the error list is empty.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import yaml
from openapi_spec_validator import OpenAPIV30SpecValidator, OpenAPIV31SpecValidator

from src.shared.constants import HTTP_METHODS, VALID_DATA_TYPES
from src.shared.models.rest_spec import ImportValidationErrorData
from src.spec_engine.services.yaml_store import load_yaml

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".yml", ".yaml")
_PATH_ITEM_FIELDS = frozenset({"summary", "description", "servers", "parameters"})
VALID_ACTIONS = ("send", "receive")


@dataclass
class ImportValidationResult:
    errors: list[ImportValidationErrorData] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    document: dict[str, Any] | None = None

    @property
    def valid(self) -> bool:
        return not self.errors


def _error(location: str, code: str, message: str) -> ImportValidationErrorData:
    return ImportValidationErrorData(location=location, error_code=code, message=message)


def validate_file_extension(filename: str | None) -> list[ImportValidationErrorData]:
    """Only ``.yml`` and ``.yaml`` uploads are accepted."""
    if not filename or not filename.strip():
        return [_error("file", "INVALID_FILENAME", "Filename is null or empty")]
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        return [_error("file", "INVALID_FILE_EXTENSION", "File extension must be .yml or .yaml")]
    return []


def parse_document(
    content: str, result: ImportValidationResult
) -> dict[str, Any] | None:
    try:
        parsed = load_yaml(content)
    except yaml.YAMLError as exc:
        result.errors.append(_error("root", "YAML_PARSE_ERROR", f"Failed to parse YAML: {exc}"))
        return None
    if not isinstance(parsed, dict):
        result.errors.append(
            _error("root", "INVALID_YAML_STRUCTURE", "YAML root must be an object/map")
        )
        return None
    return parsed


def _check_version(
    document: dict[str, Any], key: str, label: str, errors: list[ImportValidationErrorData]
) -> str | None:
    if key not in document:
        errors.append(_error(key, "MISSING_REQUIRED_FIELD", f"Missing required field '{key}'"))
        return None
    version = document[key]
    if not isinstance(version, str):
        errors.append(_error(key, "INVALID_DATA_TYPE", f"Field '{key}' must be a string"))
        return None
    if not version.startswith("3."):
        errors.append(
            _error(key, "UNSUPPORTED_VERSION", f"{label} version must be 3.x.x (found: {version})")
        )
        return None
    return version


def _check_info(document: dict[str, Any], errors: list[ImportValidationErrorData]) -> None:
    info = document.get("info")
    if info is None:
        return
    if not isinstance(info, dict):
        errors.append(_error("info", "INVALID_DATA_TYPE", "Field 'info' must be an object"))
        return
    for key in ("title", "version"):
        if key not in info:
            errors.append(
                _error(f"info.{key}", "MISSING_REQUIRED_FIELD", f"Missing required field 'info.{key}'")
            )


def _check_schema_types(
    schema: Any, location: str, errors: list[ImportValidationErrorData]
) -> None:
    if not isinstance(schema, dict) or "$ref" in schema:
        return
    schema_type = schema.get("type")
    if schema_type is not None and schema_type not in VALID_DATA_TYPES:
        errors.append(
            _error(
                f"{location}.type",
                "INVALID_DATA_TYPE",
                f"Invalid type '{schema_type}'. Valid types: {', '.join(VALID_DATA_TYPES)}",
            )
        )
    properties = schema.get("properties")
    if isinstance(properties, dict):
        for name, prop in properties.items():
            _check_schema_types(prop, f"{location}.properties.{name}", errors)
    _check_schema_types(schema.get("items"), f"{location}.items", errors)


# ======================================================================
# OpenAPI
# ======================================================================


class ImportYamlValidator:
    """Checks an OpenAPI document for the fields the REST services rely on."""

    def validate(self, content: str) -> ImportValidationResult:
        result = ImportValidationResult()
        document = parse_document(content, result)
        if document is None:
            return result
        result.document = document
        errors = result.errors

        version = _check_version(document, "openapi", "OpenAPI", errors)
        for key in ("info", "paths"):
            if key not in document:
                errors.append(_error(key, "MISSING_REQUIRED_FIELD", f"Missing required field '{key}'"))
        _check_info(document, errors)
        self._check_paths(document.get("paths"), errors)

        if not errors and version is not None:
            self._structural_warnings(document, version, result.warnings)
        return result

    @staticmethod
    def _check_paths(paths: Any, errors: list[ImportValidationErrorData]) -> None:
        if paths is None:
            return
        if not isinstance(paths, dict):
            errors.append(_error("paths", "INVALID_DATA_TYPE", "Field 'paths' must be an object"))
            return
        for path, item in paths.items():
            location = f"paths.{path}"
            if not isinstance(item, dict):
                errors.append(_error(location, "INVALID_DATA_TYPE", "Path item must be an object"))
                continue
            for key, operation in item.items():
                if key in _PATH_ITEM_FIELDS or key.startswith("$") or key.startswith("x-"):
                    continue
                if key.lower() not in HTTP_METHODS:
                    errors.append(
                        _error(
                            f"{location}.{key}",
                            "INVALID_HTTP_METHOD",
                            f"Invalid HTTP method '{key}'. Valid methods: {', '.join(HTTP_METHODS)}",
                        )
                    )
                    continue
                op_location = f"{location}.{key}"
                if not isinstance(operation, dict):
                    errors.append(_error(op_location, "INVALID_DATA_TYPE", "Operation must be an object"))
                    continue
                if "responses" not in operation:
                    errors.append(
                        _error(
                            f"{op_location}.responses",
                            "MISSING_REQUIRED_FIELD",
                            "Missing required field 'responses'",
                        )
                    )
                elif not isinstance(operation["responses"], dict):
                    errors.append(
                        _error(
                            f"{op_location}.responses",
                            "INVALID_DATA_TYPE",
                            "Field 'responses' must be an object",
                        )
                    )
                body = operation.get("requestBody")
                content = body.get("content") if isinstance(body, dict) else None
                if isinstance(content, dict):
                    for media_type, media in content.items():
                        if isinstance(media, dict):
                            _check_schema_types(
                                media.get("schema"),
                                f"{op_location}.requestBody.content.{media_type}.schema",
                                errors,
                            )

    @staticmethod
    def _structural_warnings(document: dict[str, Any], version: str, warnings: list[str]) -> None:
        """Full structural validation; findings are advisory only."""
        validator_cls = OpenAPIV31SpecValidator if version.startswith("3.1") else OpenAPIV30SpecValidator
        try:
            for error in validator_cls(document).iter_errors():
                path = " -> ".join(str(p) for p in error.absolute_path)
                warnings.append(f"{error.message} (at {path})" if path else str(error.message))
        except (ValueError, KeyError, TypeError) as exc:
            warnings.append(f"Unexpected error during spec validation: {exc}")
        for warning in warnings:
            logger.warning("Imported OpenAPI document: %s", warning)


# ======================================================================
# AsyncAPI
# ======================================================================


class ImportWebSocketYamlValidator:
    """Checks an AsyncAPI 3 document before it is merged into the WebSocket spec."""

    def validate(self, content: str) -> ImportValidationResult:
        result = ImportValidationResult()
        document = parse_document(content, result)
        if document is None:
            return result
        result.document = document
        errors = result.errors

        _check_version(document, "asyncapi", "AsyncAPI", errors)
        for key in ("info", "channels"):
            if key not in document:
                errors.append(_error(key, "MISSING_REQUIRED_FIELD", f"Missing required field '{key}'"))
        _check_info(document, errors)
        self._check_channels(document.get("channels"), errors)
        self._check_operations(document.get("operations"), errors)
        return result

    @staticmethod
    def _check_channels(channels: Any, errors: list[ImportValidationErrorData]) -> None:
        if channels is None:
            return
        if not isinstance(channels, dict):
            errors.append(_error("channels", "INVALID_DATA_TYPE", "Field 'channels' must be an object"))
            return
        for name, channel in channels.items():
            if not isinstance(channel, dict):
                errors.append(_error(f"channels.{name}", "INVALID_DATA_TYPE", "Channel must be an object"))
            elif "address" not in channel:
                errors.append(
                    _error(
                        f"channels.{name}.address",
                        "MISSING_REQUIRED_FIELD",
                        "Missing required field 'address'",
                    )
                )

    @staticmethod
    def _check_operations(operations: Any, errors: list[ImportValidationErrorData]) -> None:
        if operations is None:
            return
        if not isinstance(operations, dict):
            errors.append(
                _error("operations", "INVALID_DATA_TYPE", "Field 'operations' must be an object")
            )
            return
        for name, operation in operations.items():
            location = f"operations.{name}"
            if not isinstance(operation, dict):
                errors.append(_error(location, "INVALID_DATA_TYPE", "Operation must be an object"))
                continue
            action = operation.get("action")
            if "action" not in operation:
                errors.append(
                    _error(f"{location}.action", "MISSING_REQUIRED_FIELD", "Missing required field 'action'")
                )
            elif not isinstance(action, str):
                errors.append(
                    _error(f"{location}.action", "INVALID_DATA_TYPE", "Field 'action' must be a string")
                )
            elif action.lower() not in VALID_ACTIONS:
                errors.append(
                    _error(
                        f"{location}.action",
                        "INVALID_ACTION",
                        f"Invalid action: '{action}'. Valid actions: send, receive",
                    )
                )
            channel = operation.get("channel")
            if "channel" not in operation:
                errors.append(
                    _error(f"{location}.channel", "MISSING_REQUIRED_FIELD", "Missing required field 'channel'")
                )
            elif not isinstance(channel, dict) or "$ref" not in channel:
                errors.append(
                    _error(
                        f"{location}.channel",
                        "INVALID_REFERENCE",
                        "Field 'channel' must contain a '$ref'",
                    )
                )
