"""CRUD, import, export and sync for operations of the REST spec."""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from src.shared.constants import HTTP_METHODS, X_DIFF, X_ID, X_PROGRESS, X_TAG
from src.shared.errors import ConflictError, ImportValidationError, NotFoundError
from src.shared.locks import ReadWriteLock
from src.shared.models.rest_spec import (
    CreateRestApiRequest,
    ImportYamlResponse,
    RenamedItem,
    RestApiSpecResponse,
    SecurityRequirement,
    UpdateRestApiRequest,
)
from src.spec_engine.services.import_validator import ImportYamlValidator, validate_file_extension
from src.spec_engine.services.rest_enricher import enrich_document
from src.spec_engine.services.rest_sync import collect_operation_schema_refs
from src.spec_engine.services.schema_validator import (
    create_missing_schemas,
    rewrite_schema_refs,
)
from src.spec_engine.services.spec_converters import (
    operation_to_response,
    parameter_to_node,
    request_body_to_node,
    response_to_node,
    security_to_node,
)
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.yaml_store import RestDocumentStore

logger = logging.getLogger(__name__)

IMPORT_SUFFIX = "-import"


def security_scheme_for(name: str) -> dict[str, Any]:
    """Default scheme definition inferred from a scheme's name."""
    lowered = name.lower()
    if "basic" in lowered:
        return {"type": "http", "scheme": "basic", "description": "HTTP Basic authentication"}
    if "digest" in lowered:
        return {"type": "http", "scheme": "digest", "description": "HTTP Digest authentication"}
    if lowered.startswith("apikey"):
        return {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-Key",
            "description": "API Key authentication",
        }
    if lowered.startswith("oauth"):
        return {
            "type": "oauth2",
            "flows": {
                "authorizationCode": {
                    "authorizationUrl": "https://example.com/oauth/authorize",
                    "tokenUrl": "https://example.com/oauth/token",
                    "scopes": {},
                }
            },
            "description": "OAuth 2.0 authentication",
        }
    return {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "JWT Bearer token authentication",
    }


def unique_import_name(name: str, taken) -> str:
    """``name-import``, then ``name-import1``, ``name-import2``... until unused."""
    candidate = f"{name}{IMPORT_SUFFIX}"
    counter = 1
    while candidate in taken:
        candidate = f"{name}{IMPORT_SUFFIX}{counter}"
        counter += 1
    return candidate


class RestApiSpecService:
    """Operations of the REST spec, addressed by ``x-ouroboros-id``."""

    def __init__(
        self,
        store: RestDocumentStore,
        lock: ReadWriteLock,
        manager: SpecManager,
    ) -> None:
        self._store = store
        self._lock = lock
        self._manager = manager
        self._import_validator = ImportYamlValidator()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_rest_api_spec(self, request: CreateRestApiRequest) -> RestApiSpecResponse:
        method = request.method.lower()
        with self._lock.write():
            document = self._store.read_or_create_document()
            if self._store.operation_exists(document, request.path, method):
                raise ConflictError(
                    f"API specification already exists for {method.upper()} {request.path}"
                )
            operation = self._build_operation(request)
            operation[X_ID] = request.id or str(uuid.uuid4())
            operation[X_PROGRESS] = "mock"
            operation[X_TAG] = "none"
            operation[X_DIFF] = "none"
            self._store.put_operation(document, request.path, method, operation)
            if request.security:
                self._ensure_security_schemes(document, request.security)
            created = create_missing_schemas(document)
            if created:
                logger.info("Placeholder schemas created for new operation: count=%d", created)
            self._manager.process_and_cache(Protocol.REST, document)
        logger.info("REST operation created: %s %s id=%s", method.upper(), request.path, operation[X_ID])
        return operation_to_response(request.path, method, operation)

    def get_all_rest_api_specs(self) -> list[RestApiSpecResponse]:
        with self._lock.read():
            if not self._store.file_exists():
                return []
            document = self._store.read_document()
        return [
            operation_to_response(path, method, operation)
            for path, method, operation in self._store.iter_operations(document)
            if operation.get(X_ID)
        ]

    def get_rest_api_spec(self, spec_id: str) -> RestApiSpecResponse:
        with self._lock.read():
            if not self._store.file_exists():
                raise NotFoundError(
                    "No API specifications found. The specification file does not exist."
                )
            document = self._store.read_document()
        found = self._store.find_operation_by_id(document, spec_id)
        if found is None:
            raise NotFoundError(f"REST API specification with ID '{spec_id}' not found", name=spec_id)
        return operation_to_response(*found)

    def update_rest_api_spec(
        self, spec_id: str, request: UpdateRestApiRequest
    ) -> RestApiSpecResponse:
        with self._lock.write():
            document = self._read_existing()
            found = self._store.find_operation_by_id(document, spec_id)
            if found is None:
                raise NotFoundError(f"REST API specification with ID '{spec_id}' not found", name=spec_id)
            path, method, operation = found
            new_path = request.path or path
            new_method = (request.method or method).lower()

            if (new_path, new_method) != (path, method):
                if self._store.operation_exists(document, new_path, new_method):
                    raise ConflictError(
                        "Cannot move operation: API specification already exists for "
                        f"{new_method.upper()} {new_path}"
                    )
                self._store.remove_operation(document, path, method)

            self._apply_update(operation, request)
            operation[X_DIFF] = "none"
            self._store.put_operation(document, new_path, new_method, operation)
            if request.security:
                self._ensure_security_schemes(document, request.security)
            create_missing_schemas(document)
            self._manager.process_and_cache(Protocol.REST, document)
        logger.info("REST operation updated: id=%s %s %s", spec_id, new_method.upper(), new_path)
        return operation_to_response(new_path, new_method, operation)

    def delete_rest_api_spec(self, spec_id: str) -> None:
        with self._lock.write():
            document = self._read_existing()
            found = self._store.find_operation_by_id(document, spec_id)
            if found is None:
                raise NotFoundError(f"REST API specification with ID '{spec_id}' not found", name=spec_id)
            path, method, _ = found
            self._store.remove_operation(document, path, method)
            self._manager.process_and_cache(Protocol.REST, document)
        logger.info("REST operation deleted: id=%s %s %s", spec_id, method.upper(), path)

    # ------------------------------------------------------------------
    # import / export / sync
    # ------------------------------------------------------------------

    def import_yaml(self, filename: str | None, content: str) -> ImportYamlResponse:
        """Merge an uploaded OpenAPI document into the spec.

        Clashing schema names and path+method pairs are renamed with an
        ``-import`` suffix; references to renamed schemas are rewritten.

        Raises:
            ImportValidationError: The upload is not an acceptable document;
                nothing is written.
        """
        errors = validate_file_extension(filename)
        if errors:
            raise ImportValidationError(errors)
        result = self._import_validator.validate(content)
        if not result.valid:
            raise ImportValidationError(result.errors)
        imported = result.document or {}

        renamed: list[RenamedItem] = []
        with self._lock.write():
            document = self._store.read_or_create_document()
            schema_count = self._import_schemas(document, imported, renamed)
            api_count = self._import_paths(document, imported, renamed)
            self._import_security_schemes(document, imported)
            enrich_document(document)
            self._manager.process_and_cache(Protocol.REST, document)

        summary = f"Successfully imported {api_count} APIs and {schema_count} schemas"
        if renamed:
            summary += f", renamed {len(renamed)} items due to duplicates"
        logger.info("REST spec import: %s", summary)
        return ImportYamlResponse(
            imported=api_count,
            renamed=len(renamed),
            summary=summary,
            renamed_list=renamed,
        )

    def export_yaml(self) -> str:
        with self._lock.read():
            return self._store.read_yaml_content()

    def sync_to_file(self, spec_id: str) -> RestApiSpecResponse:
        """Promote an operation found only by the scan into a regular spec entry."""
        with self._lock.write():
            document = self._store.read_or_create_document()
            found = self._store.find_operation_by_id(document, spec_id)
            if found is None:
                found = self._copy_from_cache(document, spec_id)
            path, method, operation = found
            operation[X_DIFF] = "none"
            operation[X_PROGRESS] = "mock"
            operation[X_TAG] = "none"
            create_missing_schemas(document)
            self._manager.process_and_cache(Protocol.REST, document)
        logger.info("REST operation synced to file: id=%s %s %s", spec_id, method.upper(), path)
        return operation_to_response(path, method, operation)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _read_existing(self) -> dict[str, Any]:
        if not self._store.file_exists():
            raise NotFoundError("No API specifications found. The specification file does not exist.")
        return self._store.read_document(fresh=True)

    def _copy_from_cache(
        self, document: dict[str, Any], spec_id: str
    ) -> tuple[str, str, dict[str, Any]]:
        cached = self._manager.get_spec(Protocol.REST)
        found = self._store.find_operation_by_id(cached, spec_id) if cached else None
        if found is None:
            raise NotFoundError(f"REST API specification with ID '{spec_id}' not found", name=spec_id)
        path, method, operation = found
        if self._store.operation_exists(document, path, method):
            raise ConflictError(f"API specification already exists for {method.upper()} {path}")
        operation = copy.deepcopy(operation)
        self._store.put_operation(document, path, method, operation)
        cached_schemas = self._store.get_schemas(cached) or {}
        for name in collect_operation_schema_refs(operation, cached_schemas):
            if not self._store.schema_exists(document, name) and name in cached_schemas:
                self._store.put_schema(document, name, copy.deepcopy(cached_schemas[name]))
        return path, method, operation

    @staticmethod
    def _build_operation(request: CreateRestApiRequest | UpdateRestApiRequest) -> dict[str, Any]:
        operation: dict[str, Any] = {}
        if request.summary is not None:
            operation["summary"] = request.summary
        if request.description is not None:
            operation["description"] = request.description
        if request.tags is not None:
            operation["tags"] = list(request.tags)
        if request.parameters is not None:
            operation["parameters"] = [parameter_to_node(p) for p in request.parameters]
        if request.request_body is not None:
            operation["requestBody"] = request_body_to_node(request.request_body)
        operation["responses"] = {
            str(status): response_to_node(r) for status, r in (request.responses or {}).items()
        }
        if request.security is not None:
            operation["security"] = security_to_node(request.security)
        return operation

    def _apply_update(self, operation: dict[str, Any], request: UpdateRestApiRequest) -> None:
        built = self._build_operation(request)
        if request.responses is None:
            built.pop("responses")
        operation.update(built)

    def _ensure_security_schemes(
        self, document: dict[str, Any], security: list[SecurityRequirement]
    ) -> None:
        schemes = self._store.get_or_create_security_schemes(document)
        for requirement in security:
            for name in requirement.requirements:
                if name not in schemes:
                    schemes[name] = security_scheme_for(name)
                    logger.info("Security scheme created: name=%s type=%s", name, schemes[name]["type"])

    def _import_schemas(
        self,
        document: dict[str, Any],
        imported: dict[str, Any],
        renamed: list[RenamedItem],
    ) -> int:
        incoming = self._store.get_schemas(imported) or {}
        target = self._store.get_or_create_schemas(document)
        renames: dict[str, str] = {}
        for name in incoming:
            if name in target or name in renames.values():
                new_name = unique_import_name(name, set(target) | set(renames.values()) | set(incoming))
                renames[name] = new_name
                renamed.append(RenamedItem(type="schema", original=name, renamed=new_name))

        # References inside the uploaded document follow the renames
        rewrite_schema_refs(imported, renames)
        for name, schema in incoming.items():
            target[renames.get(name, name)] = copy.deepcopy(schema)
        return len(incoming)

    def _import_paths(
        self,
        document: dict[str, Any],
        imported: dict[str, Any],
        renamed: list[RenamedItem],
    ) -> int:
        count = 0
        known_ids = {op.get(X_ID) for _, _, op in self._store.iter_operations(document)}
        for path, item in (imported.get("paths") or {}).items():
            for method in HTTP_METHODS:
                operation = item.get(method)
                if not isinstance(operation, dict):
                    continue
                target_path = path
                if self._store.operation_exists(document, path, method):
                    target_path = f"{path}{IMPORT_SUFFIX}"
                    counter = 1
                    while self._store.operation_exists(document, target_path, method):
                        target_path = f"{path}{IMPORT_SUFFIX}{counter}"
                        counter += 1
                    renamed.append(
                        RenamedItem(
                            type="api", original=path, renamed=target_path, method=method.upper()
                        )
                    )
                operation = copy.deepcopy(operation)
                if not operation.get(X_ID) or operation[X_ID] in known_ids:
                    operation[X_ID] = str(uuid.uuid4())
                known_ids.add(operation[X_ID])
                operation[X_PROGRESS] = "mock"
                operation[X_TAG] = "none"
                operation[X_DIFF] = "none"
                self._store.put_operation(document, target_path, method, operation)
                count += 1
        return count

    def _import_security_schemes(self, document: dict[str, Any], imported: dict[str, Any]) -> None:
        incoming = (imported.get("components") or {}).get("securitySchemes")
        if not isinstance(incoming, dict):
            return
        schemes = self._store.get_or_create_security_schemes(document)
        for name, scheme in incoming.items():
            schemes.setdefault(name, copy.deepcopy(scheme))
