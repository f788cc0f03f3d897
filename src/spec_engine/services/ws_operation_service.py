"""CRUD, import, export and sync for operations of the WebSocket (AsyncAPI) spec."""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from src.shared.constants import (
    CHANNEL_REF_PREFIX,
    MESSAGE_REF_PREFIX,
    SCHEMA_REF_PREFIX,
    X_DIFF,
    X_ENTRYPOINT,
    X_ID,
    X_PROGRESS,
)
from src.shared.errors import ImportValidationError, NotFoundError, ValidationError
from src.shared.locks import ReadWriteLock
from src.shared.models.rest_spec import RenamedItem
from src.shared.models.websocket_spec import (
    ChannelMessageInfo,
    CreateOperationRequest,
    OperationResponse,
    UpdateOperationRequest,
    WebSocketImportYamlResponse,
)
from src.shared.utils import simple_name
from src.spec_engine.services.asyncapi_enricher import enrich_asyncapi_document
from src.spec_engine.services.import_validator import (
    ImportWebSocketYamlValidator,
    validate_file_extension,
)
from src.spec_engine.services.spec_converters import refs_to_api
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.ws_channel_manager import (
    WebSocketChannelManager,
    extract_channel_references,
)
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore

logger = logging.getLogger(__name__)

IMPORT_SUFFIX = "-import"
NO_FILE_MESSAGE = "No operations found. The specification file does not exist."


# ----------------------------------------------------------------------
# helpers
# ----------------------------------------------------------------------


def operation_tag(operation: dict[str, Any]) -> str | None:
    """``sendto`` for send-only, ``duplicate`` for receive+reply, ``receive`` otherwise."""
    action = operation.get("action")
    if action == "send":
        return "sendto"
    if action == "receive":
        return "duplicate" if operation.get("reply") else "receive"
    return None


def simplify_ref(ref: str) -> str:
    """Drop package qualifiers from every segment of a JSON reference."""
    return "/".join(simple_name(segment) or segment for segment in ref.split("/"))


def simplify_refs(node: Any) -> None:
    """Rewrite every ``$ref`` below *node* to use simple names, in place."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                node[key] = simplify_ref(value)
            else:
                simplify_refs(value)
    elif isinstance(node, list):
        for value in node:
            simplify_refs(value)


def rewrite_refs(node: Any, prefix: str, renames: dict[str, str]) -> None:
    """Point ``$ref`` values under *prefix* at renamed targets, in place."""
    if not renames:
        return
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(prefix):
                head, sep, tail = value[len(prefix):].partition("/")
                if head in renames:
                    node[key] = prefix + renames[head] + sep + tail
            else:
                rewrite_refs(value, prefix, renames)
    elif isinstance(node, list):
        for value in node:
            rewrite_refs(value, prefix, renames)


def _message_refs(channel_name: str, message_names: list[str] | None) -> list[dict[str, str]]:
    return [
        {"$ref": f"{CHANNEL_REF_PREFIX}{channel_name}/messages/{name}"}
        for name in message_names or []
    ]


def build_operation_definition(
    receive_channel: str | None,
    receive_messages: list[str] | None,
    reply_channel: str | None,
    reply_messages: list[str] | None,
    pathname: str | None,
) -> dict[str, Any]:
    """Operation map for a receive, send-only or receive+reply combination."""
    operation: dict[str, Any] = {}
    if receive_channel is not None:
        operation["action"] = "receive"
        operation["channel"] = {"$ref": CHANNEL_REF_PREFIX + receive_channel}
        if receive_messages:
            operation["messages"] = _message_refs(receive_channel, receive_messages)
    elif reply_channel is not None:
        operation["action"] = "send"
        operation["channel"] = {"$ref": CHANNEL_REF_PREFIX + reply_channel}
        if reply_messages:
            operation["messages"] = _message_refs(reply_channel, reply_messages)

    if receive_channel is not None and reply_channel is not None:
        reply: dict[str, Any] = {"channel": {"$ref": CHANNEL_REF_PREFIX + reply_channel}}
        if reply_messages:
            reply["messages"] = _message_refs(reply_channel, reply_messages)
        operation["reply"] = reply

    operation[X_ID] = str(uuid.uuid4())
    operation[X_ENTRYPOINT] = pathname
    operation["bindings"] = {"stomp": {}}
    operation[X_DIFF] = "none"
    operation[X_PROGRESS] = "none"
    return operation


def unique_operation_name(base: str, taken: dict[str, Any]) -> str:
    """``base``, then ``base_1``, ``base_2``... until unused."""
    name = base
    counter = 1
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    return name


class WebSocketOperationService:
    """Operations of the AsyncAPI spec, addressed by ``x-ouroboros-id``."""

    def __init__(
        self,
        store: AsyncApiDocumentStore,
        lock: ReadWriteLock,
        manager: SpecManager,
        channels: WebSocketChannelManager | None = None,
    ) -> None:
        self._store = store
        self._lock = lock
        self._manager = manager
        self._channels = channels or WebSocketChannelManager(store)
        self._import_validator = ImportWebSocketYamlValidator()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_operations(self, request: CreateOperationRequest) -> list[OperationResponse]:
        """Create one operation per receive x reply combination.

        Receives alone give ``receive`` operations, replies alone give
        ``send`` operations, both give receive+reply operations.

        Raises:
            ValidationError: Bad protocol, no pathname, or no channels at all.
        """
        if request.protocol not in ("ws", "wss"):
            raise ValidationError("Protocol must be either 'ws' or 'wss'")
        if not request.pathname:
            raise ValidationError("Pathname must be provided")
        receives = request.receives or []
        replies = request.replies or []
        if not receives and not replies:
            raise ValidationError("At least one receive or reply channel must be provided")

        created: list[tuple[str, dict[str, Any]]] = []
        with self._lock.write():
            document = self._store.read_or_create_document()
            self._channels.ensure_server_exists(document, request.protocol, request.pathname)

            if not receives:
                for reply in replies:
                    reply_channel = self._channels.ensure_channel_exists(document, reply)
                    created.append(
                        self._add(document, None, None, reply_channel, reply, request.pathname)
                    )
            for receive in receives:
                receive_channel = self._channels.ensure_channel_exists(document, receive)
                if not replies:
                    created.append(
                        self._add(document, receive_channel, receive, None, None, request.pathname)
                    )
                    continue
                for reply in replies:
                    reply_channel = self._channels.ensure_channel_exists(document, reply)
                    created.append(
                        self._add(
                            document, receive_channel, receive, reply_channel, reply, request.pathname
                        )
                    )

            self._sync_from_cache(document)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)

        logger.info("WebSocket operations created: count=%d", len(created))
        return [self._response(name, operation) for name, operation in created]

    def get_all_operations(self) -> list[OperationResponse]:
        with self._lock.read():
            document = self._current_document()
        if document is None:
            return []
        return [
            self._response(name, operation, with_tag=True)
            for name, operation in (self._store.get_operations(document) or {}).items()
            if isinstance(operation, dict)
        ]

    def get_operation(self, operation_id: str) -> OperationResponse:
        with self._lock.read():
            document = self._current_document()
        if document is None:
            raise NotFoundError(NO_FILE_MESSAGE)
        name, operation = self._find(document, operation_id)
        return self._response(name, operation)

    def update_operation(
        self, operation_id: str, request: UpdateOperationRequest
    ) -> OperationResponse:
        with self._lock.write():
            document = self._read_existing()
            name, operation = self._find(document, operation_id)

            if request.protocol is not None or request.pathname is not None:
                server = self._channels.first_server(document) or {}
                protocol = request.protocol or server.get("protocol")
                pathname = request.pathname or server.get("pathname")
                if protocol and pathname:
                    self._channels.ensure_server_exists(document, protocol, pathname)
                    operation[X_ENTRYPOINT] = pathname

            old_channels = extract_channel_references(operation)
            if request.receive is not None:
                operation["action"] = "receive"
                self._point_at(document, operation, request.receive)
            if request.reply is not None:
                if request.receive is None and operation.get("action") in ("send", None):
                    operation["action"] = "send"
                    self._point_at(document, operation, request.reply)
                    operation.pop("reply", None)
                else:
                    reply_channel = self._channels.ensure_channel_exists(document, request.reply)
                    reply: dict[str, Any] = {"channel": {"$ref": CHANNEL_REF_PREFIX + reply_channel}}
                    if request.reply.messages:
                        reply["messages"] = _message_refs(reply_channel, request.reply.messages)
                    operation["reply"] = reply

            removed = old_channels - extract_channel_references(operation)
            self._sync_from_cache(document)
            self._channels.cleanup_unused_channels(document, removed)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)

        logger.info("WebSocket operation updated: id=%s name=%s", operation_id, name)
        return self._response(name, operation)

    def delete_operation(self, operation_id: str) -> None:
        with self._lock.write():
            document = self._read_existing()
            name, operation = self._find(document, operation_id)
            channels = extract_channel_references(operation)
            self._store.remove_operation(document, name)
            self._channels.cleanup_unused_channels(document, channels)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)
        logger.info("WebSocket operation deleted: id=%s name=%s", operation_id, name)

    # ------------------------------------------------------------------
    # import / export / sync
    # ------------------------------------------------------------------

    def import_yaml(self, filename: str | None, content: str) -> WebSocketImportYamlResponse:
        """Merge an uploaded AsyncAPI document into the spec.

        Clashing names get an ``-import`` suffix; references to renamed
        schemas, messages and channels follow the rename.
        """
        errors = validate_file_extension(filename)
        if errors:
            raise ImportValidationError(errors)
        result = self._import_validator.validate(content)
        if not result.valid:
            raise ImportValidationError(result.errors)
        imported = result.document or {}
        imported_components = imported.get("components") or {}

        renamed: list[RenamedItem] = []
        with self._lock.write():
            document = self._store.read_or_create_document()

            schema_renames = self._merge(
                imported_components.get("schemas"),
                self._store.get_or_create_schemas(document),
                "schema",
                renamed,
            )
            rewrite_refs(imported, SCHEMA_REF_PREFIX, schema_renames)
            message_renames = self._merge(
                imported_components.get("messages"),
                self._store.get_or_create_messages(document),
                "message",
                renamed,
            )
            rewrite_refs(imported, MESSAGE_REF_PREFIX, message_renames)
            self._merge(imported.get("servers"), self._store.get_or_create_servers(document), "server", renamed)

            channels_in = imported.get("channels") or {}
            channel_renames = self._renames_for(channels_in, self._store.get_or_create_channels(document), "channel", renamed)
            rewrite_refs(imported, CHANNEL_REF_PREFIX, channel_renames)
            self._copy_renamed(channels_in, self._store.get_or_create_channels(document), channel_renames)

            self._copy_renamed(
                imported_components.get("schemas") or {}, self._store.get_or_create_schemas(document), schema_renames
            )
            self._copy_renamed(
                imported_components.get("messages") or {}, self._store.get_or_create_messages(document), message_renames
            )

            entrypoint = self._first_pathname(imported)
            operations_in = imported.get("operations") or {}
            target_ops = self._store.get_or_create_operations(document)
            operation_renames = self._renames_for(operations_in, target_ops, "operation", renamed)
            known_ids = {op.get(X_ID) for op in target_ops.values() if isinstance(op, dict)}
            for name, operation in operations_in.items():
                operation = copy.deepcopy(operation)
                if not operation.get(X_ID) or operation[X_ID] in known_ids:
                    operation[X_ID] = str(uuid.uuid4())
                known_ids.add(operation[X_ID])
                operation.setdefault(X_PROGRESS, "none")
                operation.setdefault(X_DIFF, "none")
                if entrypoint and X_ENTRYPOINT not in operation:
                    operation[X_ENTRYPOINT] = entrypoint
                target_ops[operation_renames.get(name, name)] = operation

            enrich_asyncapi_document(document)
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)

        summary = (
            f"Successfully imported {len(channels_in)} channels, {len(operations_in)} operations, "
            f"{len(imported_components.get('schemas') or {})} schemas, "
            f"{len(imported_components.get('messages') or {})} messages"
        )
        if renamed:
            summary += f", renamed {len(renamed)} items due to duplicates"
        logger.info("WebSocket spec import: %s", summary)
        return WebSocketImportYamlResponse(
            imported_channels=len(channels_in),
            imported_operations=len(operations_in),
            renamed=len(renamed),
            summary=summary,
            renamed_list=renamed,
        )

    def export_yaml(self) -> str:
        with self._lock.read():
            return self._store.read_yaml_content()

    def sync_to_file(self, operation_id: str) -> OperationResponse:
        """Accept an operation that was found only in code as a regular spec entry."""
        with self._lock.write():
            document = self._store.read_or_create_document()
            found = self._store.find_operation_by_id(document, operation_id)
            if found is not None:
                name, operation = found
                if operation.get(X_DIFF) != "channel":
                    return self._response(name, operation)
            else:
                name, operation = self._copy_from_cache(document, operation_id)
            operation[X_PROGRESS] = "none"
            operation[X_DIFF] = "none"
            server = self._channels.first_server(document)
            if server and server.get("pathname"):
                operation[X_ENTRYPOINT] = server["pathname"]
            self._manager.process_and_cache(Protocol.WEBSOCKET, document)
        logger.info("WebSocket operation synced to file: id=%s name=%s", operation_id, name)
        return self._response(name, operation)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _add(
        self,
        document: dict[str, Any],
        receive_channel: str | None,
        receive: ChannelMessageInfo | None,
        reply_channel: str | None,
        reply: ChannelMessageInfo | None,
        pathname: str,
    ) -> tuple[str, dict[str, Any]]:
        if receive_channel and reply_channel:
            base = f"{receive_channel}_to_{reply_channel}"
        elif receive_channel:
            base = f"{receive_channel}_receive"
        else:
            base = f"{reply_channel}_send"
        name = unique_operation_name(base, self._store.get_or_create_operations(document))
        operation = build_operation_definition(
            receive_channel,
            receive.messages if receive else None,
            reply_channel,
            reply.messages if reply else None,
            pathname,
        )
        self._store.put_operation(document, name, operation)
        return name, operation

    def _point_at(
        self, document: dict[str, Any], operation: dict[str, Any], info: ChannelMessageInfo
    ) -> None:
        channel = self._channels.ensure_channel_exists(document, info)
        operation["channel"] = {"$ref": CHANNEL_REF_PREFIX + channel}
        if info.messages:
            operation["messages"] = _message_refs(channel, info.messages)

    def _find(self, document: dict[str, Any], operation_id: str) -> tuple[str, dict[str, Any]]:
        found = self._store.find_operation_by_id(document, operation_id)
        if found is None:
            raise NotFoundError(f"Operation with id '{operation_id}' not found", name=operation_id)
        return found

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

    @staticmethod
    def _response(name: str, operation: dict[str, Any], with_tag: bool = False) -> OperationResponse:
        return OperationResponse(
            operation_name=name,
            operation=refs_to_api(operation),
            tag=operation_tag(operation) if with_tag else None,
        )

    def _sync_from_cache(self, document: dict[str, Any]) -> None:
        """Copy schemas and messages known only to the scanned spec, under simple names."""
        cached = self._manager.get_spec(Protocol.WEBSOCKET)
        if not cached:
            return
        for source, target in (
            (self._store.get_schemas(cached), self._store.get_or_create_schemas(document)),
            (self._store.get_messages(cached), self._store.get_or_create_messages(document)),
        ):
            for full_name, definition in (source or {}).items():
                name = simple_name(full_name) or full_name
                if name in target or not isinstance(definition, dict):
                    continue
                definition = copy.deepcopy(definition)
                if isinstance(definition.get("name"), str):
                    definition["name"] = simple_name(definition["name"])
                simplify_refs(definition)
                target[name] = definition
        for operation in (self._store.get_operations(document) or {}).values():
            simplify_refs(operation)

    def _copy_from_cache(
        self, document: dict[str, Any], operation_id: str
    ) -> tuple[str, dict[str, Any]]:
        cached = self._manager.get_spec(Protocol.WEBSOCKET)
        found = self._store.find_operation_by_id(cached, operation_id) if cached else None
        if found is None:
            raise NotFoundError(f"Operation with id '{operation_id}' not found in cache.", name=operation_id)
        name, operation = found
        operation = copy.deepcopy(operation)
        simplify_refs(operation)

        for channel_full in extract_channel_references(found[1]):
            channel_name = simple_name(channel_full) or channel_full
            source = (self._store.get_channels(cached) or {}).get(channel_full)
            if not isinstance(source, dict) or self._store.channel_exists(document, channel_name):
                continue
            channel = copy.deepcopy(source)
            messages = channel.get("messages")
            if isinstance(messages, dict):
                channel["messages"] = {
                    (simple_name(key) or key): value for key, value in messages.items()
                }
            simplify_refs(channel)
            self._store.put_channel(document, channel_name, channel)

        self._sync_from_cache(document)
        self._store.put_operation(document, name, operation)
        return name, operation

    @staticmethod
    def _first_pathname(document: dict[str, Any]) -> str | None:
        servers = document.get("servers")
        if not isinstance(servers, dict):
            return None
        for server in servers.values():
            if isinstance(server, dict) and isinstance(server.get("pathname"), str):
                return server["pathname"]
            break
        return None

    @staticmethod
    def _renames_for(
        incoming: dict[str, Any], target: dict[str, Any], kind: str, renamed: list[RenamedItem]
    ) -> dict[str, str]:
        renames: dict[str, str] = {}
        taken = set(target) | set(incoming)
        for name, value in incoming.items():
            if name not in target:
                continue
            new_name = f"{name}{IMPORT_SUFFIX}"
            counter = 1
            while new_name in taken:
                new_name = f"{name}{IMPORT_SUFFIX}{counter}"
                counter += 1
            taken.add(new_name)
            renames[name] = new_name
            action = value.get("action") if kind == "operation" and isinstance(value, dict) else None
            renamed.append(RenamedItem(type=kind, original=name, renamed=new_name, action=action))
        return renames

    def _merge(
        self, incoming: Any, target: dict[str, Any], kind: str, renamed: list[RenamedItem]
    ) -> dict[str, str]:
        """Rename clashing entries; servers are copied now, the rest after ref rewriting."""
        if not isinstance(incoming, dict):
            return {}
        renames = self._renames_for(incoming, target, kind, renamed)
        if kind == "server":
            self._copy_renamed(incoming, target, renames)
        return renames

    @staticmethod
    def _copy_renamed(incoming: dict[str, Any], target: dict[str, Any], renames: dict[str, str]) -> None:
        for name, value in incoming.items():
            target[renames.get(name, name)] = copy.deepcopy(value)
