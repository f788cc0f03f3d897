"""CRUD for component schemas (REST and WebSocket documents)."""
from __future__ import annotations

import logging
from typing import Any

from src.shared.constants import X_ORDERS
from src.shared.errors import ConflictError, NotFoundError
from src.shared.locks import ReadWriteLock
from src.shared.models.rest_spec import (
    CreateSchemaRequest,
    SchemaResponse,
    UpdateSchemaRequest,
)
from src.shared.utils import simple_name, to_schema_ref
from src.spec_engine.services.schema_validator import create_missing_schemas, enrich_schema
from src.spec_engine.services.spec_converters import node_to_schema_response, property_to_node
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.yaml_store import YamlDocumentStore

logger = logging.getLogger(__name__)


def resolve_schema_name(schemas: dict[str, Any] | None, name: str) -> str:
    """Return the stored key for *name*, falling back to its simple name.

    Raises:
        NotFoundError: Neither the exact nor the simple name exists.
    """
    schemas = schemas or {}
    if name in schemas:
        return name
    short = simple_name(name)
    if short and short in schemas:
        return short
    raise NotFoundError(f"Schema '{name}' not found", name=name)


def items_to_node(items: dict[str, Any]) -> dict[str, Any]:
    """Array ``items`` as sent by clients; a bare ``ref`` becomes a ``$ref``."""
    if items.get("ref"):
        return {"$ref": to_schema_ref(items["ref"])}
    node = {k: v for k, v in items.items() if k != "ref" and v is not None}
    node.setdefault("type", "string")
    return node


class SchemaService:
    """Schema CRUD shared by the REST and WebSocket documents.

    Both documents keep schemas under ``components.schemas``; the store,
    lock and protocol decide which document is edited.
    """

    def __init__(
        self,
        store: YamlDocumentStore,
        lock: ReadWriteLock,
        manager: SpecManager,
        protocol: Protocol = Protocol.REST,
    ) -> None:
        self._store = store
        self._lock = lock
        self._manager = manager
        self._protocol = protocol

    def create_schema(self, request: CreateSchemaRequest) -> SchemaResponse:
        with self._lock.write():
            document = self._store.read_or_create_document()
            if self._store.schema_exists(document, request.schema_name):
                raise ConflictError(f"Schema '{request.schema_name}' already exists")
            definition = self._build_definition(request)
            self._store.put_schema(document, request.schema_name, definition)
            create_missing_schemas(document)
            self._manager.process_and_cache(self._protocol, document)
        logger.info("Schema created: name=%s", request.schema_name)
        return node_to_schema_response(request.schema_name, definition)

    def get_all_schemas(self) -> list[SchemaResponse]:
        with self._lock.read():
            if not self._store.file_exists():
                return []
            document = self._store.read_document()
        schemas = self._store.get_schemas(document) or {}
        return [
            node_to_schema_response(name, schema)
            for name, schema in schemas.items()
            if isinstance(schema, dict)
        ]

    def get_schema(self, name: str) -> SchemaResponse:
        with self._lock.read():
            if not self._store.file_exists():
                raise NotFoundError(f"Schema '{name}' not found", name=name)
            document = self._store.read_document()
        schemas = self._store.get_schemas(document)
        key = resolve_schema_name(schemas, name)
        return node_to_schema_response(key, schemas[key])

    def update_schema(self, name: str, request: UpdateSchemaRequest) -> SchemaResponse:
        with self._lock.write():
            document = self._store.read_or_create_document()
            schemas = self._store.get_schemas(document)
            key = resolve_schema_name(schemas, name)
            schema = schemas[key]
            self._apply_update(schema, request)
            create_missing_schemas(document)
            self._manager.process_and_cache(self._protocol, document)
        logger.info("Schema updated: name=%s", key)
        return node_to_schema_response(key, schema)

    def delete_schema(self, name: str) -> None:
        with self._lock.write():
            document = self._store.read_or_create_document()
            removed = self._store.remove_schema(document, name)
            if not removed:
                short = simple_name(name)
                removed = bool(short) and self._store.remove_schema(document, short)
            if not removed:
                raise NotFoundError(f"Schema '{name}' not found", name=name)
            self._manager.process_and_cache(self._protocol, document)
        logger.info("Schema deleted: name=%s", name)

    # ------------------------------------------------------------------

    @staticmethod
    def _build_definition(request: CreateSchemaRequest) -> dict[str, Any]:
        definition: dict[str, Any] = {"type": request.type or "object"}
        if request.title is not None:
            definition["title"] = request.title
        if request.description is not None:
            definition["description"] = request.description
        if request.properties:
            definition["properties"] = {
                k: property_to_node(v) for k, v in request.properties.items()
            }
        if request.required:
            definition["required"] = list(request.required)
        if request.orders:
            definition[X_ORDERS] = list(request.orders)
        if request.xml_name:
            definition["xml"] = {"name": request.xml_name}
        if request.items:
            definition["items"] = items_to_node(request.items)
        enrich_schema(definition, request.schema_name)
        return definition

    @staticmethod
    def _apply_update(schema: dict[str, Any], request: UpdateSchemaRequest) -> None:
        if request.type is not None:
            schema["type"] = request.type
        if request.title is not None:
            schema["title"] = request.title
        if request.description is not None:
            schema["description"] = request.description
        if request.properties is not None:
            schema["properties"] = {
                k: property_to_node(v) for k, v in request.properties.items()
            }
            if request.orders is None:
                schema[X_ORDERS] = list(request.properties.keys())
        if request.required is not None:
            schema["required"] = list(request.required)
        if request.orders is not None:
            schema[X_ORDERS] = list(request.orders)
        if request.xml_name is not None:
            schema["xml"] = {"name": request.xml_name}
        if request.items is not None:
            schema["items"] = items_to_node(request.items)
        schema.pop("$ref", None)
        enrich_schema(schema)

