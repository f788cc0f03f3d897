"""Schema-level enrichment and auto-correction shared by both document kinds.

All functions here mutate the given tree in place, report whether anything
changed and never raise on malformed input.
"""
from __future__ import annotations

import logging
from typing import Any, Iterator

from src.shared.constants import SCHEMA_REF_PREFIX, X_MOCK, X_ORDERS

logger = logging.getLogger(__name__)


def placeholder_schema() -> dict[str, Any]:
    """Schema created for a reference that points nowhere."""
    return {"type": "object", "properties": {}, X_ORDERS: []}


def enrich_schema(schema: Any, location: str = "") -> bool:
    """Add mock hints and property orders to a schema tree.

    * every non-``$ref`` property receives ``x-ouroboros-mock: ""``
    * ``x-ouroboros-orders`` is derived from property order when absent
    * nested object properties and array items are handled recursively
    * array constraints are corrected (see :func:`correct_array_constraints`)

    Existing values are never overwritten, so the function is idempotent.
    """
    if not isinstance(schema, dict) or "$ref" in schema:
        return False
    changed = correct_array_constraints(schema, location)

    properties = schema.get("properties")
    if isinstance(properties, dict):
        if X_ORDERS not in schema:
            schema[X_ORDERS] = list(properties.keys())
            changed = True
        for prop_name, prop in properties.items():
            if not isinstance(prop, dict) or "$ref" in prop:
                continue
            if X_MOCK not in prop:
                prop[X_MOCK] = ""
                changed = True
            if enrich_schema(prop, f"{location}.{prop_name}" if location else prop_name):
                changed = True

    items = schema.get("items")
    if isinstance(items, dict) and enrich_schema(items, f"{location}[]"):
        changed = True
    return changed


def correct_array_constraints(schema: dict[str, Any], location: str = "") -> bool:
    """Swap ``minItems`` and ``maxItems`` when they are inverted."""
    min_items = schema.get("minItems")
    max_items = schema.get("maxItems")
    if (
        isinstance(min_items, int)
        and isinstance(max_items, int)
        and min_items > max_items
    ):
        logger.warning(
            "Swapped inverted array bounds: location=%s minItems=%d maxItems=%d",
            location or "<schema>", min_items, max_items,
        )
        schema["minItems"], schema["maxItems"] = max_items, min_items
        return True
    return False


def iter_schema_refs(node: Any) -> Iterator[str]:
    """Yield every ``#/components/schemas/<name>`` reference in a tree."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(SCHEMA_REF_PREFIX):
                yield value
            else:
                yield from iter_schema_refs(value)
    elif isinstance(node, list):
        for value in node:
            yield from iter_schema_refs(value)


def create_missing_schemas(document: dict[str, Any]) -> int:
    """Create a placeholder for every referenced schema that does not exist.

    Returns:
        The number of schemas created; ``0`` on a second run.
    """
    components = document.get("components")
    if not isinstance(components, dict):
        components = {}
        document["components"] = components
    schemas = components.get("schemas")
    if not isinstance(schemas, dict):
        schemas = {}
        components["schemas"] = schemas

    created = 0
    for ref in list(iter_schema_refs(document)):
        name = ref[len(SCHEMA_REF_PREFIX):]
        if name and name not in schemas:
            schemas[name] = placeholder_schema()
            created += 1
            logger.info("Created placeholder schema: name=%s", name)
    return created


def rewrite_schema_refs(node: Any, renames: dict[str, str]) -> None:
    """Point ``$ref`` values at renamed schemas, in place."""
    if not renames:
        return
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(SCHEMA_REF_PREFIX):
                name = value[len(SCHEMA_REF_PREFIX):]
                if name in renames:
                    node[key] = SCHEMA_REF_PREFIX + renames[name]
            else:
                rewrite_schema_refs(value, renames)
    elif isinstance(node, list):
        for value in node:
            rewrite_schema_refs(value, renames)
