"""CRUD for ``components.messages`` of the WebSocket (AsyncAPI) spec."""
from __future__ import annotations

import logging
from typing import Any

from src.shared.errors import ConflictError, NotFoundError
from src.shared.locks import ReadWriteLock
from src.shared.models.websocket_spec import (
    CreateMessageRequest,
    MessageResponse,
    UpdateMessageRequest,
)
from src.shared.utils import simple_name
from src.spec_engine.services.spec_converters import refs_to_api, refs_to_document
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.ws_operation_service import simplify_ref
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore

logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "No messages found. The specification file does not exist."


def build_message_definition(request: CreateMessageRequest) -> dict[str, Any]:
    message: dict[str, Any] = {}
    if request.name is not None:
        message["name"] = request.name
    message["contentType"] = request.content_type
    if request.description is not None:
        message["description"] = request.description
    if request.headers:
        message["headers"] = refs_to_document(request.headers)
    if request.payload:
        message["payload"] = refs_to_document(request.payload)
    return message


def message_to_response(name: str, message: dict[str, Any]) -> MessageResponse:
    """API view of a stored message; package qualifiers are stripped."""
    headers = message.get("headers")
    payload = message.get("payload")
    values: dict[str, Any] = {}
    for key, node in (("headers", headers), ("payload", payload)):
        if isinstance(node, dict):
            node = refs_to_api(node)
            _simplify_api_refs(node)
            values[key] = node
    display_name = message.get("name")
    return MessageResponse(
        message_name=simple_name(name) or name,
        name=simple_name(display_name) if isinstance(display_name, str) else None,
        content_type=message.get("contentType") if isinstance(message.get("contentType"), str) else None,
        description=message.get("description") if isinstance(message.get("description"), str) else None,
        **values,
    )


def _simplify_api_refs(node: Any) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "ref" and isinstance(value, str):
                node[key] = simplify_ref(value)
            else:
                _simplify_api_refs(value)
    elif isinstance(node, list):
        for value in node:
            _simplify_api_refs(value)


class WebSocketMessageService:
    def __init__(
        self,
        store: AsyncApiDocumentStore,
        lock: ReadWriteLock,
        manager: SpecManager,
    ) -> None:
        self._store = store
        self._lock = lock
        self._manager = manager

    def create_message(self, request: CreateMessageRequest) -> MessageResponse:
        with self._lock.write():
            document = self._store.read_or_create_document()
            if self._store.message_exists(document, request.message_name):
                raise ConflictError(f"Message '{request.message_name}' already exists")
            definition = build_message_definition(request)
            self._store.put_message(document, request.message_name, definition)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)
        logger.info("WebSocket message created: name=%s", request.message_name)
        return message_to_response(request.message_name, definition)

    def get_all_messages(self) -> list[MessageResponse]:
        with self._lock.read():
            document = self._current_document()
        if document is None:
            return []
        return [
            message_to_response(name, message)
            for name, message in (self._store.get_messages(document) or {}).items()
            if isinstance(message, dict)
        ]

    def get_message(self, name: str) -> MessageResponse:
        with self._lock.read():
            document = self._current_document()
        if document is None:
            raise NotFoundError(NO_FILE_MESSAGE)
        key = self._resolve(document, name)
        return message_to_response(key, self._store.get_message(document, key))

    def update_message(self, name: str, request: UpdateMessageRequest) -> MessageResponse:
        with self._lock.write():
            document = self._read_existing()
            key = self._resolve(document, name)
            message = self._store.get_message(document, key)
            if request.name is not None:
                message["name"] = request.name
            if request.content_type is not None:
                message["contentType"] = request.content_type
            if request.description is not None:
                message["description"] = request.description
            if request.headers is not None:
                message["headers"] = refs_to_document(request.headers)
            if request.payload is not None:
                message["payload"] = refs_to_document(request.payload)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)
        logger.info("WebSocket message updated: name=%s", key)
        return message_to_response(key, message)

    def delete_message(self, name: str) -> None:
        with self._lock.write():
            document = self._read_existing()
            key = self._resolve(document, name)
            self._store.remove_message(document, key)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)
        logger.info("WebSocket message deleted: name=%s", key)

    # ------------------------------------------------------------------

    def _resolve(self, document: dict[str, Any], name: str) -> str:
        if self._store.message_exists(document, name):
            return name
        short = simple_name(name)
        if short and self._store.message_exists(document, short):
            return short
        raise NotFoundError(f"Message '{name}' not found", name=name)

    def _read_existing(self) -> dict[str, Any]:
        if not self._store.file_exists():
            raise NotFoundError(NO_FILE_MESSAGE)
        return self._store.read_document(fresh=True)

    def _current_document(self) -> dict[str, Any] | None:
        cached = self._manager.get_spec(Protocol.WEBSOCKET)
        if cached is not None:
            return cached
        if self._store.file_exists():
            return self._store.read_document()
        return None
