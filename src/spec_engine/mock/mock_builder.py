"""Turns resolved schemas into mock bodies and serializes them."""
from __future__ import annotations

import json
from typing import Any
from xml.etree import ElementTree

from src.spec_engine.mock.data_generator import generate_value

ARRAY_MOCK_SIZE = 3


def build_mock(schema: dict[str, Any] | None, field_name: str = "") -> Any:
    """Mock value for a ``$ref``-free schema.

    Objects recurse into their properties, arrays hold ``ARRAY_MOCK_SIZE``
    generated items, every other type goes to the value generator.
    """
    if not schema:
        return {}
    schema_type = schema.get("type")
    if schema_type is None and isinstance(schema.get("properties"), dict):
        schema_type = "object"
    if schema_type == "object" or schema_type is None:
        properties = schema.get("properties")
        if not isinstance(properties, dict):
            return generate_value(schema, field_name) if schema_type is None else {}
        return {
            name: build_mock(prop if isinstance(prop, dict) else {}, name)
            for name, prop in properties.items()
        }
    if schema_type == "array":
        items = schema.get("items")
        items = items if isinstance(items, dict) else {"type": "string"}
        return [build_mock(items, field_name) for _ in range(ARRAY_MOCK_SIZE)]
    return generate_value(schema, field_name)


def deep_merge(base: Any, override: Any) -> Any:
    """Overlay *override* on *base*; maps merge recursively, anything else is replaced."""
    if isinstance(base, dict) and isinstance(override, dict):
        merged = dict(base)
        for key, value in override.items():
            merged[key] = deep_merge(base[key], value) if key in base else value
        return merged
    return override


# ----------------------------------------------------------------------
# serialization
# ----------------------------------------------------------------------


def _append_xml(parent: ElementTree.Element, tag: str, value: Any) -> None:
    if isinstance(value, list):
        for item in value:
            _append_xml(parent, tag, item)
        return
    element = ElementTree.SubElement(parent, tag)
    _fill_xml(element, value)


def _fill_xml(element: ElementTree.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, child in value.items():
            _append_xml(element, str(key), child)
    elif isinstance(value, list):
        for item in value:
            _append_xml(element, "item", item)
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    elif value is not None:
        element.text = str(value)


def to_xml(body: Any, root_name: str = "root") -> str:
    root = ElementTree.Element(root_name)
    _fill_xml(root, body)
    return ElementTree.tostring(root, encoding="unicode")


def xml_root_name(schema: dict[str, Any] | None) -> str:
    xml = (schema or {}).get("xml")
    if isinstance(xml, dict) and isinstance(xml.get("name"), str) and xml["name"]:
        return xml["name"]
    return "root"


def serialize(body: Any, content_type: str, schema: dict[str, Any] | None = None) -> str:
    if "xml" in content_type.lower():
        return to_xml(body, xml_root_name(schema))
    return json.dumps(body, ensure_ascii=False)
