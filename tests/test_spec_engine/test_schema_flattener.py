"""Tests for schema flattening and comparison."""
from __future__ import annotations

from collections import Counter

from src.spec_engine.services.schema_flattener import (
    compare_counts,
    compare_flattened,
    flatten_schema,
    flatten_schemas,
)


class TestFlattenSchema:
    """Tests for flatten_schema and flatten_schemas."""

    def test_primitives_and_binary(self):
        schema = {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "file": {"type": "string", "format": "binary"},
            },
        }
        counts = flatten_schema("Upload", schema, {}, set())
        assert counts == Counter({"id:integer": 1, "name:string": 1, "file:binary": 1})

    def test_ref_and_inline_object_flatten_identically(self):
        by_ref = {
            "Outer": {"type": "object", "properties": {"f": {"$ref": "#/components/schemas/Inner"}}},
            "Inner": {"type": "object", "properties": {"g": {"type": "string"}}},
        }
        inline = {
            "Outer": {
                "type": "object",
                "properties": {"f": {"type": "object", "properties": {"g": {"type": "string"}}}},
            }
        }
        assert flatten_schemas(by_ref)["Outer"] == flatten_schemas(inline)["Outer"]
        assert flatten_schemas(inline)["Outer"] == Counter({"g:string": 1})

    def test_array_of_ref_is_opaque(self):
        schemas = {
            "Outer": {
                "type": "object",
                "properties": {"arr": {"type": "array", "items": {"$ref": "#/components/schemas/Inner"}}},
            },
            "Inner": {"type": "object", "properties": {"g": {"type": "string"}}},
        }
        assert flatten_schemas(schemas)["Outer"] == Counter({"arr:array.Inner": 1})

    def test_array_of_primitives(self):
        schema = {
            "type": "object",
            "properties": {
                "tags": {"type": "array", "items": {"type": "string"}},
                "blobs": {"type": "array", "items": {"type": "string", "format": "binary"}},
            },
        }
        counts = flatten_schema("S", schema, {}, set())
        assert counts == Counter({"tags:array.string": 1, "blobs:array.binary": 1})

    def test_cycle_terminates(self):
        schemas = {
            "A": {
                "type": "object",
                "properties": {"x": {"type": "string"}, "b": {"$ref": "#/components/schemas/B"}},
            },
            "B": {
                "type": "object",
                "properties": {"y": {"type": "integer"}, "a": {"$ref": "#/components/schemas/A"}},
            },
        }
        flattened = flatten_schemas(schemas)
        assert flattened["A"] == Counter({"x:string": 1, "y:integer": 1})
        assert flattened["B"] == Counter({"y:integer": 1, "x:string": 1})

    def test_duplicate_field_names_are_counted(self):
        schemas = {
            "Outer": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "inner": {"type": "object", "properties": {"name": {"type": "string"}}},
                },
            }
        }
        assert flatten_schemas(schemas)["Outer"]["name:string"] == 2


class TestCompare:
    """Tests for compare_counts and compare_flattened."""

    def test_missing_key_counts_as_zero(self):
        assert compare_counts(Counter({"a:string": 1}), Counter({"a:string": 1, "b:integer": 0}))
        assert not compare_counts(Counter({"a:string": 1}), Counter({"a:string": 2}))

    def test_absent_schema_is_mismatch(self):
        base = {"User": Counter({"id:string": 1})}
        assert compare_flattened(base, {}) == {"User": False}

    def test_type_change_is_mismatch(self):
        before = flatten_schemas({"User": {"properties": {"name": {"type": "string"}}}})
        after = flatten_schemas({"User": {"properties": {"name": {"type": "integer"}}}})
        assert compare_flattened(before, after) == {"User": False}
        assert compare_flattened(before, before) == {"User": True}
