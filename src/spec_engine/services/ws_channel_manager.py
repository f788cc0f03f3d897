"""Channel and server bookkeeping for the AsyncAPI document."""
from __future__ import annotations

import logging
from typing import Any, Iterable

from src.shared.constants import CHANNEL_REF_PREFIX, MESSAGE_REF_PREFIX
from src.shared.errors import NotFoundError, ValidationError
from src.shared.locks import ReadWriteLock
from src.shared.models.websocket_spec import ChannelMessageInfo, ChannelResponse
from src.spec_engine.services.spec_converters import refs_to_api
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore

logger = logging.getLogger(__name__)


def address_to_channel_name(address: str) -> str:
    """``/chat/send`` -> ``_chat_send``."""
    if not address:
        raise ValidationError("Address cannot be null or empty")
    name = address[1:] if address.startswith("/") else address
    return "_" + name.replace("/", "_")


def server_name(protocol: str, pathname: str) -> str:
    """``ws`` + ``/ws/chat`` -> ``ws-ws_chat``."""
    sanitized = pathname[1:] if pathname.startswith("/") else pathname
    return f"{protocol}-{sanitized.replace('/', '_')}"


def _message_refs(message_names: Iterable[str]) -> dict[str, Any]:
    return {name: {"$ref": MESSAGE_REF_PREFIX + name} for name in message_names}


def build_channel_definition(address: str, message_names: list[str] | None) -> dict[str, Any]:
    channel: dict[str, Any] = {"address": address}
    if message_names:
        channel["messages"] = _message_refs(message_names)
    channel["bindings"] = {"stomp": {}}
    return channel


def _channel_name_of(ref: Any) -> str | None:
    if isinstance(ref, dict):
        ref = ref.get("$ref")
    if isinstance(ref, str) and ref.startswith(CHANNEL_REF_PREFIX):
        return ref[len(CHANNEL_REF_PREFIX):]
    return None


def extract_channel_references(operation: dict[str, Any]) -> set[str]:
    """Channel names used by an operation, its reply channel included."""
    names: set[str] = set()
    main = _channel_name_of(operation.get("channel"))
    if main:
        names.add(main)
    reply = operation.get("reply")
    if isinstance(reply, dict):
        reply_channel = _channel_name_of(reply.get("channel"))
        if reply_channel:
            names.add(reply_channel)
    return names


class WebSocketChannelManager:
    """Creates, reuses and prunes channels and servers in an AsyncAPI document."""

    def __init__(self, store: AsyncApiDocumentStore, host: str = "localhost:8080") -> None:
        self._store = store
        self._host = host

    def ensure_channel_exists(self, document: dict[str, Any], info: ChannelMessageInfo) -> str:
        """Return the channel name for *info*, creating the channel from its address.

        Raises:
            NotFoundError: ``channel_ref`` names a channel that does not exist.
            ValidationError: Neither ``address`` nor ``channel_ref`` is given.
        """
        if info.channel_ref:
            name = info.channel_ref
            if not self._store.channel_exists(document, name):
                raise NotFoundError(f"Channel '{name}' not found", name=name)
            if info.messages:
                self.update_channel_messages(document, name, info.messages)
            return name

        if not info.address:
            raise ValidationError("Either address or channelRef must be provided")

        name = address_to_channel_name(info.address)
        if not self._store.channel_exists(document, name):
            self._store.put_channel(document, name, build_channel_definition(info.address, info.messages))
            logger.debug("Channel created: name=%s address=%s", name, info.address)
        elif info.messages:
            self.update_channel_messages(document, name, info.messages)
        return name

    def update_channel_messages(
        self, document: dict[str, Any], channel_name: str, message_names: list[str]
    ) -> None:
        channel = self._store.get_channel(document, channel_name)
        if channel is None:
            return
        messages = channel.get("messages")
        if not isinstance(messages, dict):
            messages = {}
            channel["messages"] = messages
        messages.update(_message_refs(message_names))

    def is_channel_used(self, document: dict[str, Any], channel_name: str) -> bool:
        for operation in (self._store.get_operations(document) or {}).values():
            if isinstance(operation, dict) and channel_name in extract_channel_references(operation):
                return True
        return False

    def cleanup_unused_channels(self, document: dict[str, Any], channel_names: Iterable[str]) -> list[str]:
        """Remove the given channels when no operation references them any more."""
        removed = []
        for name in channel_names:
            if not self.is_channel_used(document, name) and self._store.remove_channel(document, name):
                logger.info("Removed unused channel: name=%s", name)
                removed.append(name)
        return removed

    # servers ------------------------------------------------------------

    def ensure_server_exists(self, document: dict[str, Any], protocol: str, pathname: str) -> str:
        name = server_name(protocol, pathname)
        servers = self._store.get_or_create_servers(document)
        if name not in servers:
            self._store.put_server(
                document,
                name,
                {
                    "host": self._host,
                    "pathname": pathname,
                    "protocol": protocol,
                    "description": f"{protocol.upper()} WebSocket server at {pathname}",
                },
            )
            logger.debug("Server created: name=%s", name)
        return name

    def first_server(self, document: dict[str, Any]) -> dict[str, Any] | None:
        for server in self._store.get_or_create_servers(document).values():
            if isinstance(server, dict):
                return server
        return None


class WebSocketChannelService:
    """Read-only view of the channels section."""

    def __init__(self, store: AsyncApiDocumentStore, lock: ReadWriteLock, manager: SpecManager) -> None:
        self._store = store
        self._lock = lock
        self._manager = manager

    def _document(self) -> dict[str, Any] | None:
        cached = self._manager.get_spec(Protocol.WEBSOCKET)
        if cached is not None:
            return cached
        with self._lock.read():
            if not self._store.file_exists():
                return None
            return self._store.read_document()

    def get_all_channels(self) -> list[ChannelResponse]:
        document = self._document()
        if document is None:
            return []
        return [
            ChannelResponse(channel_name=name, channel=refs_to_api(channel))
            for name, channel in (self._store.get_channels(document) or {}).items()
            if isinstance(channel, dict)
        ]

    def get_channel(self, name: str) -> ChannelResponse:
        document = self._document()
        channel = self._store.get_channel(document, name) if document is not None else None
        if channel is None:
            raise NotFoundError(f"Channel '{name}' not found", name=name)
        return ChannelResponse(channel_name=name, channel=refs_to_api(channel))
