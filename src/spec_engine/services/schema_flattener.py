"""Flatten schemas into ``field:type`` multisets and compare them.

Two schemas are considered equivalent when their flattened multisets are
equal. A ``$ref`` or inline object property contributes the keys of the
referenced schema unprefixed, while an array of references is opaque and
contributes a single ``name:array.<RefName>`` key.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from src.shared.constants import PRIMITIVE_TYPES
from src.shared.utils import last_ref_segment, schema_ref_name

logger = logging.getLogger(__name__)


def flatten_schemas(schemas: dict[str, Any] | None) -> dict[str, Counter]:
    """Flatten every schema of a ``components.schemas`` table."""
    result: dict[str, Counter] = {}
    if not schemas:
        return result
    visited: set[str] = set()
    for name, schema in schemas.items():
        if isinstance(schema, dict):
            result[name] = flatten_schema(name, schema, schemas, visited)
    return result


def flatten_schema(
    name: str,
    schema: dict[str, Any] | None,
    schemas: dict[str, Any] | None,
    visited: set[str],
) -> Counter:
    """Flatten one named schema.

    ``visited`` is shared with nested calls while the schema is expanded and
    *name* is discarded again on exit, so sibling schemas can reuse it.
    """
    counts: Counter = Counter()
    if not schema or name in visited:
        return counts
    visited.add(name)
    try:
        ref_name = schema_ref_name(schema.get("$ref"))
        if ref_name is not None:
            counts.update(
                flatten_schema(ref_name, (schemas or {}).get(ref_name), schemas, visited)
            )
            return counts
        properties = schema.get("properties")
        if isinstance(properties, dict):
            for prop_name, prop in properties.items():
                collect_property_counts(prop_name, prop, schemas, counts, visited)
    finally:
        visited.discard(name)
    return counts


def collect_property_counts(
    name: str,
    prop: Any,
    schemas: dict[str, Any] | None,
    counts: Counter,
    visited: set[str],
) -> None:
    """Add the ``field:type`` keys contributed by one property to *counts*."""
    if not isinstance(prop, dict):
        return
    schemas = schemas or {}

    ref_name = schema_ref_name(prop.get("$ref"))
    if ref_name is not None:
        if ref_name in visited:
            return
        target = schemas.get(ref_name)
        if isinstance(target, dict):
            counts.update(flatten_schema(ref_name, target, schemas, visited))
        return

    prop_type = prop.get("type")
    if prop_type in PRIMITIVE_TYPES:
        if prop.get("format") == "binary":
            counts[f"{name}:binary"] += 1
        else:
            counts[f"{name}:{prop_type}"] += 1
        return

    if prop_type == "array":
        items = prop.get("items")
        if isinstance(items, dict):
            item_ref = items.get("$ref")
            if item_ref:
                counts[f"{name}:array.{last_ref_segment(item_ref)}"] += 1
                return
            if items.get("format") == "binary":
                counts[f"{name}:array.binary"] += 1
                return
            item_type = items.get("type")
            if item_type:
                counts[f"{name}:array.{item_type}"] += 1
                return
        counts[f"{name}:array"] += 1
        return

    nested = prop.get("properties")
    if isinstance(nested, dict):
        for nested_name, nested_prop in nested.items():
            collect_property_counts(nested_name, nested_prop, schemas, counts, visited)
        return

    if prop_type:
        counts[f"{name}:{prop_type}"] += 1


def compare_counts(left: Counter, right: Counter) -> bool:
    """Multiset equality; a key missing on either side counts as zero."""
    for key in set(left) | set(right):
        if left.get(key, 0) != right.get(key, 0):
            return False
    return True


def compare_flattened(
    base: dict[str, Counter], target: dict[str, Counter]
) -> dict[str, bool]:
    """Compare each schema of *base* with the same-named schema of *target*."""
    result: dict[str, bool] = {}
    for name, counts in base.items():
        other = target.get(name)
        result[name] = other is not None and compare_counts(counts, other)
    return result
