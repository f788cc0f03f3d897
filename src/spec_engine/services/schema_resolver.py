"""Resolve ``$ref`` schema graphs into inline trees with cycle protection."""
from __future__ import annotations

import logging
from typing import Any

from src.shared.constants import SCHEMA_REF_PREFIX

logger = logging.getLogger(__name__)


def resolve_schema(
    schema: dict[str, Any] | None,
    schemas: dict[str, Any] | None,
    visited: set[str] | None = None,
) -> dict[str, Any]:
    """Return *schema* with every component ``$ref`` replaced by its definition.

    Each branch of the tree receives its own copy of *visited*, so a schema
    referenced from two sibling properties is resolved in both, while a
    schema that refers back to one of its ancestors resolves to ``{}``.
    Malformed or missing references also resolve to ``{}``; this function
    never raises on them.

    Args:
        schema: The schema node to resolve.
        schemas: The ``components.schemas`` table.
        visited: Schema names already expanded on the current path.

    Returns:
        A new schema tree; the inputs are not modified.
    """
    if not schema or not isinstance(schema, dict):
        return {}
    if visited is None:
        visited = set()
    schemas = schemas or {}

    ref = schema.get("$ref")
    if ref is not None:
        if not isinstance(ref, str) or not ref.startswith(SCHEMA_REF_PREFIX):
            logger.warning("Unsupported schema reference: %s", ref)
            return {}
        name = ref[len(SCHEMA_REF_PREFIX):]
        if name in visited:
            logger.warning("Circular schema reference skipped: %s", name)
            return {}
        target = schemas.get(name)
        if not isinstance(target, dict):
            logger.warning("Referenced schema not found: %s", name)
            return {}
        return resolve_schema(target, schemas, visited | {name})

    resolved = dict(schema)
    properties = schema.get("properties")
    if isinstance(properties, dict):
        resolved["properties"] = {
            prop_name: resolve_schema(prop, schemas, set(visited))
            for prop_name, prop in properties.items()
        }
    items = schema.get("items")
    if isinstance(items, dict):
        resolved["items"] = resolve_schema(items, schemas, set(visited))
    return resolved
