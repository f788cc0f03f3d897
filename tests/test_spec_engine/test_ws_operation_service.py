"""Tests for WebSocket operation CRUD and import."""
from __future__ import annotations

import pytest

from src.shared.errors import ImportValidationError, NotFoundError, ValidationError
from src.shared.models.websocket_spec import (
    ChannelMessageInfo,
    CreateOperationRequest,
    UpdateOperationRequest,
)
from src.spec_engine.services.ws_channel_manager import address_to_channel_name
from src.spec_engine.services.ws_operation_service import (
    WebSocketOperationService,
    operation_tag,
    rewrite_refs,
    simplify_ref,
    unique_operation_name,
)

IMPORT_DOCUMENT = """\
asyncapi: 3.0.0
info:
  title: Chat
  version: 1.0.0
servers:
  ws:
    host: localhost:8080
    protocol: ws
    pathname: /ws
channels:
  _chat:
    address: /chat
    messages:
      ChatMessage:
        $ref: '#/components/messages/ChatMessage'
operations:
  listen:
    action: receive
    channel:
      $ref: '#/channels/_chat'
components:
  messages:
    ChatMessage:
      payload:
        type: object
"""


@pytest.fixture
def service(ws_store, ws_lock, manager) -> WebSocketOperationService:
    return WebSocketOperationService(ws_store, ws_lock, manager)


def _request(receives=None, replies=None) -> CreateOperationRequest:
    return CreateOperationRequest(
        protocol="ws",
        pathname="/ws",
        receives=[ChannelMessageInfo(address=a) for a in receives or []] or None,
        replies=[ChannelMessageInfo(address=a) for a in replies or []] or None,
    )


class TestHelpers:
    def test_operation_tag(self):
        assert operation_tag({"action": "send"}) == "sendto"
        assert operation_tag({"action": "receive"}) == "receive"
        assert operation_tag({"action": "receive", "reply": {}}) == "duplicate"
        assert operation_tag({}) is None

    def test_address_to_channel_name(self):
        assert address_to_channel_name("/chat/send") == "_chat_send"
        assert address_to_channel_name("topic") == "_topic"
        with pytest.raises(ValidationError):
            address_to_channel_name("")

    def test_unique_operation_name(self):
        assert unique_operation_name("a", {}) == "a"
        assert unique_operation_name("a", {"a": 1, "a_1": 1}) == "a_2"

    def test_ref_rewriting(self):
        assert simplify_ref("#/components/schemas/com.acme.User") == "#/components/schemas/User"
        node = {"channel": {"$ref": "#/channels/_chat/messages/Msg"}}
        rewrite_refs(node, "#/channels/", {"_chat": "_chat-import"})
        assert node["channel"]["$ref"] == "#/channels/_chat-import/messages/Msg"


class TestCreate:
    """Tests for operation creation."""

    def test_receive_only(self, service, ws_store):
        created = service.create_operations(_request(receives=["/chat/send"]))
        assert [op.operation_name for op in created] == ["_chat_send_receive"]
        assert created[0].operation["action"] == "receive"
        assert created[0].operation["channel"] == {"ref": "#/channels/_chat_send"}

        document = ws_store.read_document(fresh=True)
        assert document["channels"]["_chat_send"]["address"] == "/chat/send"
        assert document["servers"]

    def test_reply_only_is_send(self, service):
        created = service.create_operations(_request(replies=["/topic/room"]))
        assert created[0].operation_name == "_topic_room_send"
        assert created[0].operation["action"] == "send"

    def test_cross_product(self, service):
        created = service.create_operations(
            _request(receives=["/a", "/b"], replies=["/x", "/y"])
        )
        names = sorted(op.operation_name for op in created)
        assert names == ["_a_to__x", "_a_to__y", "_b_to__x", "_b_to__y"]
        assert all(op.operation["reply"] for op in created)

    def test_tags_in_listing(self, service):
        service.create_operations(_request(receives=["/a"]))
        service.create_operations(_request(replies=["/b"]))
        service.create_operations(_request(receives=["/c"], replies=["/d"]))
        tags = {op.operation_name: op.tag for op in service.get_all_operations()}
        assert tags == {"_a_receive": "receive", "_b_send": "sendto", "_c_to__d": "duplicate"}

    def test_no_channels(self, service):
        with pytest.raises(ValidationError):
            service.create_operations(_request())

    def test_unknown_channel_ref(self, service):
        request = CreateOperationRequest(
            protocol="ws", pathname="/ws", receives=[ChannelMessageInfo(channel_ref="_ghost")]
        )
        with pytest.raises(NotFoundError):
            service.create_operations(request)


class TestUpdateDelete:
    def test_update_receive_channel_prunes_old(self, service, ws_store):
        created = service.create_operations(_request(receives=["/old"]))
        operation_id = created[0].operation["x-ouroboros-id"]

        updated = service.update_operation(
            operation_id, UpdateOperationRequest(receive=ChannelMessageInfo(address="/new"))
        )
        assert updated.operation["channel"] == {"ref": "#/channels/_new"}
        channels = ws_store.read_document(fresh=True)["channels"]
        assert "_new" in channels
        assert "_old" not in channels

    def test_delete_prunes_channels(self, service, ws_store):
        created = service.create_operations(_request(receives=["/gone"]))
        service.delete_operation(created[0].operation["x-ouroboros-id"])
        document = ws_store.read_document(fresh=True)
        assert "_gone" not in (document.get("channels") or {})
        assert service.get_all_operations() == []

    def test_missing_operation(self, service):
        service.create_operations(_request(receives=["/a"]))
        with pytest.raises(NotFoundError):
            service.get_operation("ghost")


class TestImport:
    """Tests for AsyncAPI import."""

    def test_import_then_reimport_renames(self, service, ws_store):
        first = service.import_yaml("chat.yml", IMPORT_DOCUMENT)
        assert first.imported_channels == 1
        assert first.imported_operations == 1
        assert first.renamed == 0

        second = service.import_yaml("chat.yaml", IMPORT_DOCUMENT)
        renamed = {(item.type, item.original): item.renamed for item in second.renamed_list}
        assert renamed[("channel", "_chat")] == "_chat-import"
        assert renamed[("operation", "listen")] == "listen-import"
        assert renamed[("message", "ChatMessage")] == "ChatMessage-import"

        document = ws_store.read_document(fresh=True)
        assert document["operations"]["listen-import"]["channel"] == {"$ref": "#/channels/_chat-import"}
        assert document["operations"]["listen-import"]["x-ouroboros-entrypoint"] == "/ws"
        ids = {op["x-ouroboros-id"] for op in document["operations"].values()}
        assert len(ids) == 2

    def test_invalid_action(self, service):
        content = IMPORT_DOCUMENT.replace("action: receive", "action: publish")
        with pytest.raises(ImportValidationError) as exc_info:
            service.import_yaml("chat.yml", content)
        assert exc_info.value.errors[0].error_code == "INVALID_ACTION"
