"""Tests for WebSocket messages, schemas and the AsyncAPI enricher."""
from __future__ import annotations

import pytest

from src.shared.errors import ConflictError, NotFoundError
from src.shared.models.rest_spec import CreateSchemaRequest, SchemaProperty
from src.shared.models.websocket_spec import CreateMessageRequest, UpdateMessageRequest
from src.spec_engine.services.asyncapi_enricher import AsyncApiEnricher, enrich_asyncapi_document
from src.spec_engine.services.ws_message_service import WebSocketMessageService
from src.spec_engine.services.ws_schema_service import WebSocketSchemaService


@pytest.fixture
def messages(ws_store, ws_lock, manager) -> WebSocketMessageService:
    return WebSocketMessageService(ws_store, ws_lock, manager)


class TestWebSocketMessageService:
    """Tests for message CRUD."""

    def test_create_stores_document_refs(self, messages, ws_store):
        created = messages.create_message(
            CreateMessageRequest(
                message_name="ChatMessage",
                payload={"schema": {"ref": "#/components/schemas/com.app.Chat"}},
            )
        )
        assert created.content_type == "application/json"
        assert created.payload == {"schema": {"ref": "#/components/schemas/Chat"}}

        stored = ws_store.read_document(fresh=True)["components"]["messages"]["ChatMessage"]
        assert stored["payload"] == {"schema": {"$ref": "#/components/schemas/com.app.Chat"}}

    def test_duplicate(self, messages):
        messages.create_message(CreateMessageRequest(message_name="Ping"))
        with pytest.raises(ConflictError):
            messages.create_message(CreateMessageRequest(message_name="Ping"))

    def test_update_and_lookup_by_simple_name(self, messages):
        messages.create_message(CreateMessageRequest(message_name="Ping"))
        updated = messages.update_message("com.app.Ping", UpdateMessageRequest(description="keepalive"))
        assert updated.description == "keepalive"
        assert messages.get_message("Ping").description == "keepalive"

    def test_delete(self, messages):
        messages.create_message(CreateMessageRequest(message_name="Ping"))
        messages.delete_message("Ping")
        with pytest.raises(NotFoundError):
            messages.get_message("Ping")

    def test_no_file(self, messages):
        assert messages.get_all_messages() == []
        with pytest.raises(NotFoundError):
            messages.update_message("Ping", UpdateMessageRequest())


class TestWebSocketSchemaService:
    def test_schemas_written_to_asyncapi_document(self, ws_store, ws_lock, manager, rest_store):
        service = WebSocketSchemaService(ws_store, ws_lock, manager)
        service.create_schema(
            CreateSchemaRequest(schema_name="Chat", properties={"text": SchemaProperty(type="string")})
        )
        document = ws_store.read_document(fresh=True)
        assert document["asyncapi"] == "3.0.0"
        assert document["components"]["schemas"]["Chat"]["x-ouroboros-orders"] == ["text"]
        assert not rest_store.file_exists()


class TestAsyncApiEnricher:
    """Tests for the startup enrichment pass."""

    def test_operations_and_channels_filled(self):
        document = {
            "asyncapi": "3.0.0",
            "info": {},
            "channels": {"_c": {"address": "/c"}},
            "operations": {"o": {"action": "receive"}},
            "components": {"schemas": {"S": {"type": "object", "properties": {"a": {"type": "string"}}}}},
        }
        summary = enrich_asyncapi_document(document)
        assert summary.changed
        assert summary.operations_enriched == 1
        assert document["channels"]["_c"]["x-ouroboros-isvalid"] is True
        assert document["operations"]["o"]["x-ouroboros-progress"] == "mock"
        assert document["operations"]["o"]["x-ouroboros-id"]
        assert document["components"]["schemas"]["S"]["x-ouroboros-orders"] == ["a"]

        assert not enrich_asyncapi_document(document).changed

    def test_null_sections_repaired(self):
        document = {"asyncapi": "3.0.0", "channels": None, "operations": None, "components": None}
        enrich_asyncapi_document(document)
        assert document["channels"] == {}
        assert document["components"] == {"schemas": {}, "messages": {}}

    def test_invalid_action_warned(self):
        summary = enrich_asyncapi_document(
            {"asyncapi": "3.0.0", "info": {}, "channels": {}, "operations": {"o": {"action": "publish"}}}
        )
        assert any("publish" in w for w in summary.warnings)

    def test_default_file_created(self, ws_store):
        summary = AsyncApiEnricher(ws_store).validate_and_enrich()
        assert summary.file_created
        assert ws_store.read_document(fresh=True)["asyncapi"] == "3.0.0"
