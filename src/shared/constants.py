"""Shared constants used across the spec engine."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Port numbers
SPEC_ENGINE_PORT: int = 8080

# Service names
SPEC_ENGINE_SERVICE_NAME: str = "spec-engine"

# Spec file locations (relative to the configured base directory)
REST_SPEC_FILE: str = "ouroboros/rest/ourorest.yml"
WEBSOCKET_SPEC_FILE: str = "ouroboros/websocket/ourowebsocket.yml"

# Document versions
OPENAPI_VERSION: str = "3.1.0"
ASYNCAPI_VERSION: str = "3.0.0"

# Reference prefixes
SCHEMA_REF_PREFIX: str = "#/components/schemas/"
MESSAGE_REF_PREFIX: str = "#/components/messages/"
CHANNEL_REF_PREFIX: str = "#/channels/"

HTTP_METHODS: list[str] = [
    "get", "post", "put", "delete", "patch", "options", "head", "trace",
]
PRIMITIVE_TYPES: frozenset[str] = frozenset({"string", "integer", "number", "boolean"})
VALID_DATA_TYPES: list[str] = ["string", "number", "integer", "boolean", "array", "object"]

# Extension fields
X_ID: str = "x-ouroboros-id"
X_PROGRESS: str = "x-ouroboros-progress"
X_TAG: str = "x-ouroboros-tag"
X_DIFF: str = "x-ouroboros-diff"
X_MOCK: str = "x-ouroboros-mock"
X_ORDERS: str = "x-ouroboros-orders"
X_RESPONSE: str = "x-ouroboros-response"
X_REQ_LOG: str = "x-ouroboros-req-log"
X_RES_LOG: str = "x-ouroboros-res-log"
X_ENTRYPOINT: str = "x-ouroboros-entrypoint"
X_ISVALID: str = "x-ouroboros-isvalid"

# Mock request header forcing an error status
MOCK_ERROR_HEADER: str = "x-ouroboros-error"
