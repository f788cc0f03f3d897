"""Validate, repair and enrich the REST (OpenAPI) spec file at startup."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from src.shared.constants import HTTP_METHODS, X_DIFF, X_ID, X_PROGRESS, X_TAG
from src.shared.errors import ParsingError
from src.spec_engine.services.schema_validator import create_missing_schemas, enrich_schema
from src.spec_engine.services.yaml_store import RestDocumentStore

logger = logging.getLogger(__name__)

# Path-item keys that are not operations
_PATH_ITEM_FIELDS = frozenset({"summary", "description", "servers", "parameters"})


@dataclass
class EnrichmentSummary:
    """What one enrichment pass did to a document."""
    changed: bool = False
    file_created: bool = False
    parse_error: bool = False
    operations_enriched: int = 0
    schemas_enriched: int = 0
    schemas_created: int = 0
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def enrich_operation(operation: dict[str, Any]) -> bool:
    """Add missing ``x-ouroboros-*`` metadata; existing values are kept."""
    changed = False
    defaults = {
        X_ID: None,
        X_PROGRESS: "mock",
        X_TAG: "none",
        X_DIFF: "none",
    }
    for key, default in defaults.items():
        if operation.get(key) is None:
            operation[key] = default if default is not None else str(uuid.uuid4())
            changed = True
    return changed


def _enrich_inline_content(container: Any, location: str) -> bool:
    """Enrich every inline media-type schema under a requestBody or response."""
    if not isinstance(container, dict):
        return False
    content = container.get("content")
    if not isinstance(content, dict):
        return False
    changed = False
    for media_type, media in content.items():
        if isinstance(media, dict) and enrich_schema(
            media.get("schema"), f"{location}.content.{media_type}"
        ):
            changed = True
    return changed


def _check_structure(document: dict[str, Any], summary: EnrichmentSummary) -> None:
    version = document.get("openapi")
    if version is None:
        summary.warn("Missing 'openapi' field")
    elif not str(version).startswith("3."):
        summary.warn(f"Unsupported OpenAPI version: {version}")
    if "info" not in document:
        summary.warn("Missing 'info' section")
    if "paths" not in document:
        summary.warn("Missing 'paths' section")


def _repair_sections(document: dict[str, Any]) -> bool:
    changed = False
    components = document.get("components")
    if not isinstance(components, dict):
        document["components"] = {"schemas": {}}
        changed = True
    elif not isinstance(components.get("schemas"), dict):
        components["schemas"] = {}
        changed = True
    if not isinstance(document.get("paths"), dict):
        document["paths"] = {}
        changed = True
    if "security" in document and document["security"] is None:
        document["security"] = []
        changed = True
    return changed


def enrich_document(document: dict[str, Any]) -> EnrichmentSummary:
    """Repair and enrich an OpenAPI document tree in place.

    Running it twice leaves the document unchanged the second time.
    """
    summary = EnrichmentSummary()
    _check_structure(document, summary)
    if _repair_sections(document):
        summary.changed = True

    for path, path_item in document["paths"].items():
        if not isinstance(path_item, dict):
            summary.warn(f"Path item is not an object: {path}")
            continue
        for key, operation in path_item.items():
            lowered = key.lower()
            if lowered not in HTTP_METHODS:
                if key in _PATH_ITEM_FIELDS or key.startswith("$") or key.startswith("x-"):
                    continue
                message = f"Invalid HTTP method '{key}' at path {path}"
                if lowered.endswith("s") and lowered[:-1] in HTTP_METHODS:
                    message += f" (did you mean '{lowered[:-1]}'?)"
                summary.warn(message)
                continue
            if not isinstance(operation, dict):
                continue
            location = f"paths.{path}.{lowered}"
            if enrich_operation(operation):
                summary.operations_enriched += 1
                summary.changed = True
            if _enrich_inline_content(operation.get("requestBody"), f"{location}.requestBody"):
                summary.changed = True
            responses = operation.get("responses")
            if isinstance(responses, dict):
                for status, response in responses.items():
                    if _enrich_inline_content(response, f"{location}.responses.{status}"):
                        summary.changed = True

    for name, schema in document["components"]["schemas"].items():
        if enrich_schema(schema, f"components.schemas.{name}"):
            summary.schemas_enriched += 1
            summary.changed = True

    created = create_missing_schemas(document)
    if created:
        summary.schemas_created = created
        summary.changed = True
    return summary


class RestSpecEnricher:
    """Startup pass over the REST spec file."""

    def __init__(self, store: RestDocumentStore) -> None:
        self._store = store

    def validate_and_enrich(self) -> EnrichmentSummary:
        """Create, repair or enrich the file; never raises.

        A file that fails to parse is left untouched.
        """
        if not self._store.file_exists():
            self._store.write_document(self._store.default_document())
            logger.info("Created default REST spec: path=%s", self._store.path)
            return EnrichmentSummary(changed=True, file_created=True)

        try:
            document = self._store.read_document(fresh=True)
        except ParsingError as exc:
            logger.error("REST spec not enriched, parse failure: %s", exc.detail)
            return EnrichmentSummary(parse_error=True)

        summary = enrich_document(document)
        if summary.changed:
            self._store.write_document(document)
            logger.info(
                "Enriched REST spec: operations=%d schemas=%d created=%d",
                summary.operations_enriched,
                summary.schemas_enriched,
                summary.schemas_created,
            )
        return summary
