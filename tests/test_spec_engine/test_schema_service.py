"""Tests for the component schema CRUD service."""
from __future__ import annotations

import pytest

from src.shared.errors import ConflictError, NotFoundError
from src.shared.models.rest_spec import CreateSchemaRequest, SchemaProperty, UpdateSchemaRequest
from src.spec_engine.services.schema_flattener import compare_counts, flatten_schemas
from src.spec_engine.services.schema_service import SchemaService, resolve_schema_name


@pytest.fixture
def service(rest_store, rest_lock, manager) -> SchemaService:
    return SchemaService(rest_store, rest_lock, manager)


def _user_request() -> CreateSchemaRequest:
    return CreateSchemaRequest(
        schema_name="User",
        properties={
            "id": SchemaProperty(type="string", format="uuid"),
            "name": SchemaProperty(type="string"),
        },
        required=["id", "name"],
    )


class TestResolveSchemaName:
    def test_exact_and_simple_name(self):
        schemas = {"User": {}}
        assert resolve_schema_name(schemas, "User") == "User"
        assert resolve_schema_name(schemas, "com.acme.User") == "User"

    def test_unknown_name(self):
        with pytest.raises(NotFoundError) as exc_info:
            resolve_schema_name({}, "Ghost")
        assert exc_info.value.name == "Ghost"


class TestSchemaService:
    """Tests for SchemaService."""

    def test_create_writes_file_and_orders(self, service, rest_store):
        created = service.create_schema(_user_request())
        assert created.schema_name == "User"
        assert created.orders == ["id", "name"]

        document = rest_store.read_document(fresh=True)
        stored = document["components"]["schemas"]["User"]
        assert stored["required"] == ["id", "name"]
        assert stored["properties"]["id"]["format"] == "uuid"

    def test_duplicate_rejected(self, service):
        service.create_schema(_user_request())
        with pytest.raises(ConflictError):
            service.create_schema(_user_request())

    def test_get_by_qualified_name(self, service):
        service.create_schema(_user_request())
        assert service.get_schema("com.example.User").schema_name == "User"

    def test_get_all_without_file(self, service):
        assert service.get_all_schemas() == []

    def test_update_changes_flattened_shape(self, service, rest_store):
        service.create_schema(_user_request())
        before = flatten_schemas(rest_store.get_schemas(rest_store.read_document(fresh=True)))

        updated = service.update_schema(
            "User",
            UpdateSchemaRequest(
                properties={
                    "id": SchemaProperty(type="string", format="uuid"),
                    "name": SchemaProperty(type="integer"),
                }
            ),
        )
        assert updated.properties["name"].type == "integer"
        assert updated.orders == ["id", "name"]

        after = flatten_schemas(rest_store.get_schemas(rest_store.read_document(fresh=True)))
        assert not compare_counts(before["User"], after["User"])

    def test_ref_property_creates_placeholder(self, service, rest_store):
        service.create_schema(
            CreateSchemaRequest(
                schema_name="Order",
                properties={"buyer": SchemaProperty(ref="Customer")},
            )
        )
        schemas = rest_store.get_schemas(rest_store.read_document(fresh=True))
        assert schemas["Order"]["properties"]["buyer"] == {"$ref": "#/components/schemas/Customer"}
        assert "Customer" in schemas

    def test_delete(self, service):
        service.create_schema(_user_request())
        service.delete_schema("User")
        with pytest.raises(NotFoundError):
            service.get_schema("User")

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            service.delete_schema("Ghost")
