"""Tests for mock body generation and serialization."""
from __future__ import annotations

import json
import uuid
from xml.etree import ElementTree

from src.shared.constants import X_MOCK
from src.spec_engine.mock.data_generator import (
    ERROR_PREFIX,
    evaluate_expression,
    generate_value,
    smart_string,
)
from src.spec_engine.mock.mock_builder import ARRAY_MOCK_SIZE, build_mock, deep_merge, serialize


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_request_values_win(self):
        generated = {"id": "generated-id", "name": "fake"}
        merged = deep_merge(generated, {"name": "override"})
        assert merged == {"id": "generated-id", "name": "override"}

    def test_nested_maps_merge(self):
        base = {"profile": {"city": "Seoul", "zip": "00000"}, "id": 1}
        merged = deep_merge(base, {"profile": {"city": "Busan"}})
        assert merged == {"profile": {"city": "Busan", "zip": "00000"}, "id": 1}

    def test_arrays_replaced(self):
        merged = deep_merge({"tags": ["a", "b", "c"]}, {"tags": ["x"]})
        assert merged["tags"] == ["x"]

    def test_new_keys_added(self):
        assert deep_merge({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}

    def test_base_not_modified(self):
        base = {"profile": {"city": "Seoul"}}
        deep_merge(base, {"profile": {"city": "Busan"}})
        assert base == {"profile": {"city": "Seoul"}}


class TestBuildMock:
    """Tests for build_mock."""

    def test_object_shape_and_types(self):
        schema = {
            "type": "object",
            "properties": {
                "id": {"type": "string", "format": "uuid"},
                "age": {"type": "integer", "minimum": 18, "maximum": 20},
                "active": {"type": "boolean"},
                "score": {"type": "number"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "address": {"type": "object", "properties": {"city": {"type": "string"}}},
            },
        }
        body = build_mock(schema)
        uuid.UUID(body["id"])
        assert 18 <= body["age"] <= 20
        assert isinstance(body["active"], bool)
        assert isinstance(body["score"], float)
        assert len(body["tags"]) == ARRAY_MOCK_SIZE
        assert isinstance(body["address"]["city"], str)

    def test_enum_respected(self):
        schema = {"type": "object", "properties": {"status": {"type": "string", "enum": ["on", "off"]}}}
        assert build_mock(schema)["status"] in ("on", "off")

    def test_literal_mock_returned_verbatim(self):
        schema = {"type": "object", "properties": {"name": {"type": "string", X_MOCK: "Ada"}}}
        assert build_mock(schema) == {"name": "Ada"}

    def test_empty_schema(self):
        assert build_mock({}) == {}
        assert build_mock(None) == {}

    def test_top_level_array(self):
        schema = {"type": "array", "items": {"type": "object", "properties": {"n": {"type": "integer"}}}}
        body = build_mock(schema)
        assert len(body) == ARRAY_MOCK_SIZE
        assert all(isinstance(item["n"], int) for item in body)


class TestDataGenerator:
    """Tests for mock value expressions."""

    def test_expression_evaluated(self):
        value = evaluate_expression("{{$number.numberBetween(min=5, max=5)}}")
        assert value == 5

    def test_unknown_expression(self):
        assert evaluate_expression("{{$nope.nothing}}") is None
        value = generate_value({"type": "string", X_MOCK: "{{$nope.nothing}}"})
        assert value == f"{ERROR_PREFIX} {{{{$nope.nothing}}}}"

    def test_non_string_mock_verbatim(self):
        assert generate_value({"type": "integer", X_MOCK: 7}) == 7

    def test_blank_mock_falls_back(self):
        value = generate_value({"type": "string", "format": "email", X_MOCK: "  "})
        assert "@" in value

    def test_field_name_heuristics(self):
        assert "@" in smart_string("contactEmail")
        assert smart_string("zzz") is None


class TestSerialize:
    def test_json(self):
        assert json.loads(serialize({"name": "Ünïcode"}, "application/json")) == {"name": "Ünïcode"}

    def test_xml_uses_schema_root_name(self):
        text = serialize({"id": 1, "tags": ["a", "b"]}, "application/xml", {"xml": {"name": "user"}})
        root = ElementTree.fromstring(text)
        assert root.tag == "user"
        assert root.find("id").text == "1"
        assert [t.text for t in root.findall("tags")] == ["a", "b"]
