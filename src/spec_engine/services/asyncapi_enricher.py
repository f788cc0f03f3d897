"""Validate, repair and enrich the WebSocket (AsyncAPI) spec file at startup."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from src.shared.constants import X_DIFF, X_ID, X_ISVALID, X_PROGRESS, X_TAG
from src.shared.errors import ParsingError
from src.spec_engine.services.rest_enricher import EnrichmentSummary
from src.spec_engine.services.schema_validator import enrich_schema
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore

logger = logging.getLogger(__name__)

VALID_ACTIONS = ("send", "receive")


def _fill(target: dict[str, Any], defaults: dict[str, Any]) -> bool:
    changed = False
    for key, value in defaults.items():
        if key not in target:
            target[key] = str(uuid.uuid4()) if key == X_ID else value
            changed = True
    return changed


def _check_structure(document: dict[str, Any], summary: EnrichmentSummary) -> None:
    version = document.get("asyncapi")
    if version is None:
        summary.warn("Missing 'asyncapi' field (expected 3.0.0)")
    elif isinstance(version, str) and not version.startswith("3."):
        summary.warn(f"Unsupported AsyncAPI version: {version}")
    for key in ("info", "channels", "operations"):
        if key not in document:
            summary.warn(f"Missing '{key}' field")


def _repair_sections(document: dict[str, Any]) -> bool:
    changed = False
    if "components" in document:
        components = document["components"]
        if components is None:
            document["components"] = {"schemas": {}, "messages": {}}
            changed = True
        elif isinstance(components, dict):
            for key in ("schemas", "messages"):
                if key not in components:
                    components[key] = {}
                    changed = True
    for key in ("channels", "operations", "servers"):
        if key in document and document[key] is None:
            document[key] = {}
            changed = True
    return changed


def _message_schema(message: dict[str, Any]) -> Any:
    payload = message.get("payload")
    if isinstance(payload, dict) and isinstance(payload.get("schema"), dict):
        return payload["schema"]
    return payload


def enrich_asyncapi_document(document: dict[str, Any]) -> EnrichmentSummary:
    """Repair and enrich an AsyncAPI document tree in place; idempotent."""
    summary = EnrichmentSummary()
    _check_structure(document, summary)
    if _repair_sections(document):
        summary.changed = True

    channels = document.get("channels")
    if isinstance(channels, dict):
        for channel in channels.values():
            if isinstance(channel, dict) and _fill(
                channel,
                {X_ID: None, X_PROGRESS: "mock", X_TAG: "none", X_DIFF: "none", X_ISVALID: True},
            ):
                summary.changed = True

    operations = document.get("operations")
    if isinstance(operations, dict):
        for name, operation in operations.items():
            if not isinstance(operation, dict):
                continue
            action = operation.get("action")
            if isinstance(action, str) and action.lower() not in VALID_ACTIONS:
                summary.warn(
                    f"Invalid action '{action}' in operation '{name}'; expected send or receive"
                )
            if _fill(operation, {X_ID: None, X_PROGRESS: "mock", X_TAG: "none"}):
                summary.operations_enriched += 1
                summary.changed = True

    components = document.get("components")
    if isinstance(components, dict):
        messages = components.get("messages")
        if isinstance(messages, dict):
            for name, message in messages.items():
                if isinstance(message, dict) and enrich_schema(
                    _message_schema(message), f"components.messages.{name}.payload"
                ):
                    summary.changed = True
        schemas = components.get("schemas")
        if isinstance(schemas, dict):
            for name, schema in schemas.items():
                if enrich_schema(schema, f"components.schemas.{name}"):
                    summary.schemas_enriched += 1
                    summary.changed = True
    return summary


class AsyncApiEnricher:
    """Startup pass over the WebSocket spec file."""

    def __init__(self, store: AsyncApiDocumentStore) -> None:
        self._store = store

    def validate_and_enrich(self) -> EnrichmentSummary:
        if not self._store.file_exists():
            self._store.write_document(self._store.default_document())
            logger.info("Created default WebSocket spec: path=%s", self._store.path)
            return EnrichmentSummary(changed=True, file_created=True)

        try:
            document = self._store.read_document(fresh=True)
        except ParsingError as exc:
            logger.error("WebSocket spec not enriched, parse failure: %s", exc.detail)
            return EnrichmentSummary(parse_error=True)

        summary = enrich_asyncapi_document(document)
        if summary.changed:
            self._store.write_document(document)
            logger.info(
                "Enriched WebSocket spec: operations=%d schemas=%d",
                summary.operations_enriched, summary.schemas_enriched,
            )
        return summary
