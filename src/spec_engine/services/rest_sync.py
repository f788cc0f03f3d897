"""Reconcile the REST spec file with the spec scanned from running code.

The file is the source of truth. The pipeline only annotates it: each file
operation is marked with how it relates to the implementation (``diff``,
``progress``, ``tag``, and mismatch logs), and operations that exist only in
the code are copied in with ``diff=endpoint`` so they can be promoted later.
"""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from src.shared.constants import (
    HTTP_METHODS,
    SCHEMA_REF_PREFIX,
    X_DIFF,
    X_ID,
    X_PROGRESS,
    X_REQ_LOG,
    X_RES_LOG,
    X_RESPONSE,
    X_TAG,
)
from src.shared.utils import schema_ref_name
from src.spec_engine.services.request_diff import compare_request
from src.spec_engine.services.response_diff import compare_responses
from src.spec_engine.services.schema_flattener import compare_flattened, flatten_schemas

logger = logging.getLogger(__name__)


def normalize_tags(tags: Any) -> Any:
    """Upper-case operation tags."""
    if not isinstance(tags, list):
        return tags
    return [t.upper() if isinstance(t, str) else t for t in tags]


def _schemas_of(spec: dict[str, Any] | None) -> dict[str, Any]:
    if not spec:
        return {}
    components = spec.get("components")
    if not isinstance(components, dict):
        return {}
    schemas = components.get("schemas")
    return schemas if isinstance(schemas, dict) else {}


def _operations(path_item: Any):
    if not isinstance(path_item, dict):
        return
    for method in HTTP_METHODS:
        operation = path_item.get(method)
        if isinstance(operation, dict):
            yield method, operation


def collect_operation_schema_refs(
    operation: dict[str, Any], schemas: dict[str, Any]
) -> set[str]:
    """Names of every component schema an operation needs, transitively."""
    names: set[str] = set()

    def walk(node: Any, visited: frozenset[str]) -> None:
        if isinstance(node, dict):
            name = schema_ref_name(node.get("$ref"))
            if name is not None:
                if name in visited:
                    return
                names.add(name)
                walk(schemas.get(name), visited | {name})
                return
            for value in node.values():
                walk(value, visited)
        elif isinstance(node, list):
            for value in node:
                walk(value, visited)

    for key in ("parameters", "requestBody", "responses"):
        walk(operation.get(key), frozenset())
    return names


class RestSyncPipeline:
    """Marks the file spec with the differences found in the scanned spec."""

    def reconcile(
        self,
        file_spec: dict[str, Any] | None,
        scanned_spec: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        """Return the reconciled file spec.

        Args:
            file_spec: Parsed spec file, or None when there is no file yet.
            scanned_spec: Spec generated from the running code.

        Returns:
            The annotated file spec (the scanned spec itself when adopted),
            or *file_spec* unchanged when nothing was scanned.
        """
        if not scanned_spec:
            return file_spec
        scanned_paths = scanned_spec.get("paths") or {}

        if file_spec is None:
            if not scanned_paths:
                return None
            return self._adopt_scanned(scanned_spec)

        file_flattened = flatten_schemas(_schemas_of(file_spec))
        scan_flattened = flatten_schemas(_schemas_of(scanned_spec))
        schema_matches = compare_flattened(scan_flattened, file_flattened)

        file_components = file_spec.get("components")
        if isinstance(file_components, dict) and file_components.get("securitySchemes"):
            scan_components = scanned_spec.setdefault("components", {})
            scan_components["securitySchemes"] = copy.deepcopy(
                file_components["securitySchemes"]
            )

        file_paths = file_spec.get("paths")
        if not isinstance(file_paths, dict):
            file_paths = {}
            file_spec["paths"] = file_paths
        self._reset_file_operations(file_paths)

        for url, scan_item in scanned_paths.items():
            if url not in file_paths:
                self._add_scanned_path(url, scan_item, file_spec, scanned_spec)
                continue
            file_item = file_paths[url]
            for method, scan_op in _operations(scan_item):
                file_op = file_item.get(method)
                if not isinstance(file_op, dict):
                    self._add_scanned_operation(url, method, scan_op, file_item)
                    continue
                if file_op.get(X_DIFF) == "endpoint":
                    continue
                if str(scan_op.get(X_PROGRESS, "")).lower() == "mock":
                    file_op[X_PROGRESS] = "mock"
                    file_op[X_TAG] = scan_op.get(X_TAG, "none")
                    continue
                compare_request(file_op, scan_op, file_flattened, scan_flattened)
                if scan_op.get(X_RESPONSE) == "use":
                    compare_responses(file_op, scan_op, schema_matches)
                logger.debug(
                    "Reconciled operation: %s %s diff=%s progress=%s",
                    method.upper(), url, file_op.get(X_DIFF), file_op.get(X_PROGRESS),
                )
        return file_spec

    # ------------------------------------------------------------------

    @staticmethod
    def _adopt_scanned(scanned_spec: dict[str, Any]) -> dict[str, Any]:
        for item in scanned_spec["paths"].values():
            for _, operation in _operations(item):
                operation.setdefault(X_ID, str(uuid.uuid4()))
                operation[X_DIFF] = "endpoint"
                operation[X_TAG] = "none"
        logger.info("No REST spec file; adopted scanned spec: paths=%d", len(scanned_spec["paths"]))
        return scanned_spec

    @staticmethod
    def _reset_file_operations(file_paths: dict[str, Any]) -> None:
        """Drop scanned-only entries from a previous run and clear stale markers."""
        for url in list(file_paths):
            item = file_paths[url]
            if not isinstance(item, dict):
                continue
            kept = 0
            for method, operation in list(_operations(item)):
                if operation.get(X_DIFF) == "endpoint":
                    del item[method]
                    continue
                kept += 1
                operation[X_DIFF] = "none"
                operation[X_PROGRESS] = "mock"
                operation[X_TAG] = "none"
                operation.pop(X_REQ_LOG, None)
                operation.pop(X_RES_LOG, None)
            if kept == 0:
                del file_paths[url]

    def _add_scanned_path(
        self,
        url: str,
        scan_item: Any,
        file_spec: dict[str, Any],
        scanned_spec: dict[str, Any],
    ) -> None:
        item = copy.deepcopy(scan_item)
        file_spec["paths"][url] = item
        for method, operation in _operations(item):
            operation.setdefault(X_ID, str(uuid.uuid4()))
            if "tags" in operation:
                operation["tags"] = normalize_tags(operation["tags"])
            operation[X_DIFF] = "endpoint"
            operation[X_TAG] = "none"
            self._pull_schemas(operation, file_spec, scanned_spec)
        logger.info("Scanned path missing from spec file, added: %s", url)

    @staticmethod
    def _add_scanned_operation(
        url: str, method: str, scan_op: dict[str, Any], file_item: dict[str, Any]
    ) -> None:
        operation = copy.deepcopy(scan_op)
        existing = file_item.get(method)
        if isinstance(existing, dict) and existing.get("security"):
            operation["security"] = existing["security"]
        operation.setdefault(X_ID, str(uuid.uuid4()))
        if "tags" in operation:
            operation["tags"] = normalize_tags(operation["tags"])
        operation[X_DIFF] = "endpoint"
        operation[X_TAG] = "none"
        file_item[method] = operation
        logger.info("Scanned operation missing from spec file, added: %s %s", method.upper(), url)

    @staticmethod
    def _pull_schemas(
        operation: dict[str, Any], file_spec: dict[str, Any], scanned_spec: dict[str, Any]
    ) -> None:
        scan_schemas = _schemas_of(scanned_spec)
        if not scan_schemas:
            return
        components = file_spec.setdefault("components", {})
        if not isinstance(components.get("schemas"), dict):
            components["schemas"] = {}
        file_schemas = components["schemas"]
        for name in collect_operation_schema_refs(operation, scan_schemas):
            if name not in file_schemas and name in scan_schemas:
                file_schemas[name] = copy.deepcopy(scan_schemas[name])
                logger.debug("Copied scanned schema into spec file: %s%s", SCHEMA_REF_PREFIX, name)
