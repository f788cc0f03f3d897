"""Reconcile the WebSocket (AsyncAPI) spec file with the scanned spec."""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from src.shared.constants import (
    MESSAGE_REF_PREFIX,
    SCHEMA_REF_PREFIX,
    X_DIFF,
    X_ID,
    X_PROGRESS,
)
from src.shared.utils import last_ref_segment, simple_name
from src.spec_engine.services.rest_sync import normalize_tags

logger = logging.getLogger(__name__)

_SCALAR_FIELDS = ("title", "type", "format", "enum", "required")


def extract_message_name(ref: str | None) -> str | None:
    """``#/components/messages/X`` or ``#/channels/c/messages/X`` -> ``X``."""
    if not ref:
        return None
    if ref.startswith(MESSAGE_REF_PREFIX):
        return ref[len(MESSAGE_REF_PREFIX):]
    marker = "/messages/"
    idx = ref.find(marker)
    if idx != -1:
        return ref[idx + len(marker):]
    return None


def _normalize_ref(ref: Any) -> Any:
    if isinstance(ref, str) and ref.startswith(SCHEMA_REF_PREFIX):
        return SCHEMA_REF_PREFIX + simple_name(ref[len(SCHEMA_REF_PREFIX):])
    return ref


def schemas_equal(left: Any, right: Any) -> bool:
    """Structural schema equality; fully qualified refs compare by simple name."""
    if left is right:
        return True
    if not isinstance(left, dict) or not isinstance(right, dict):
        return left is None and right is None
    for key in _SCALAR_FIELDS:
        if left.get(key) != right.get(key):
            return False
    if _normalize_ref(left.get("$ref")) != _normalize_ref(right.get("$ref")):
        return False
    if not schemas_equal(left.get("items"), right.get("items")):
        return False
    left_props = left.get("properties")
    right_props = right.get("properties")
    if left_props is None or right_props is None:
        return left_props is right_props
    if set(left_props) != set(right_props):
        return False
    return all(schemas_equal(left_props[k], right_props[k]) for k in left_props)


def compare_schema_tables(
    file_spec: dict[str, Any], scanned_spec: dict[str, Any]
) -> dict[str, bool]:
    """Equality per schema name; scanned names are reduced to simple names."""
    file_schemas = ((file_spec.get("components") or {}).get("schemas")) or {}
    scan_schemas = {
        simple_name(name): schema
        for name, schema in (((scanned_spec.get("components") or {}).get("schemas")) or {}).items()
    }
    result: dict[str, bool] = {}
    for name in set(file_schemas) | set(scan_schemas):
        if name not in file_schemas or name not in scan_schemas:
            result[name] = False
        else:
            result[name] = schemas_equal(file_schemas[name], scan_schemas[name])
    return result


def _section(parent: dict[str, Any], key: str) -> dict[str, Any]:
    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def _channel_ref(operation: Any) -> str | None:
    if not isinstance(operation, dict):
        return None
    channel = operation.get("channel")
    if isinstance(channel, dict):
        return channel.get("$ref")
    return None


def _first_message_ref(operation: dict[str, Any]) -> str | None:
    messages = operation.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        return messages[0].get("$ref")
    return None


class WebSocketSyncPipeline:
    """Marks file operations with their implementation state per channel."""

    def reconcile(
        self,
        file_spec: dict[str, Any] | None,
        scanned_spec: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        if not scanned_spec:
            return file_spec
        scan_ops = scanned_spec.get("operations") or {}

        if file_spec is None:
            if not scan_ops:
                return None
            for operation in scan_ops.values():
                if not isinstance(operation, dict):
                    continue
                operation.setdefault(X_ID, str(uuid.uuid4()))
                if "tags" in operation:
                    operation["tags"] = normalize_tags(operation["tags"])
                operation[X_DIFF] = "channel"
                operation[X_PROGRESS] = "none"
            logger.info("No WebSocket spec file; adopted scanned spec: operations=%d", len(scan_ops))
            return scanned_spec

        if not scan_ops:
            return file_spec

        schema_matches = compare_schema_tables(file_spec, scanned_spec)
        file_ops = file_spec.get("operations")
        if not isinstance(file_ops, dict):
            file_ops = {}
            file_spec["operations"] = file_ops

        by_channel: dict[str, list[dict[str, Any]]] = {}
        for operation in file_ops.values():
            ref = _channel_ref(operation)
            if ref is not None:
                by_channel.setdefault(ref, []).append(operation)

        for op_name, scan_op in scan_ops.items():
            channel_ref = _channel_ref(scan_op)
            if channel_ref is None or scan_op.get("action") == "send":
                continue
            progress = scan_op.get(X_PROGRESS)
            if progress is None:
                continue

            if channel_ref not in by_channel:
                operation = copy.deepcopy(scan_op)
                if "tags" in operation:
                    operation["tags"] = normalize_tags(operation["tags"])
                operation[X_DIFF] = "channel"
                operation[X_ID] = str(uuid.uuid4())
                file_ops[op_name] = operation
                self._add_channel(file_spec, scanned_spec, channel_ref)
                self._add_operation_messages(file_spec, scanned_spec, operation)
                logger.info("Scanned WebSocket operation added to spec file: %s", op_name)
                continue

            channel_ops = by_channel[channel_ref]
            if progress != "completed":
                for operation in channel_ops:
                    operation[X_PROGRESS] = progress
                continue

            file_msg = _first_message_ref(channel_ops[0])
            scan_msg = _first_message_ref(scan_op)
            if file_msg is None or scan_msg is None:
                continue
            file_class = simple_name(extract_message_name(file_msg))
            scan_class = simple_name(extract_message_name(scan_msg))
            matched = (
                file_class is not None
                and file_class == scan_class
                and schema_matches.get(scan_class) is True
            )
            for operation in channel_ops:
                if matched:
                    operation[X_PROGRESS] = "completed"
                    operation[X_DIFF] = "none"
                else:
                    operation[X_PROGRESS] = "none"
                    operation[X_DIFF] = "message"
        return file_spec

    # ------------------------------------------------------------------
    # copying referenced definitions from the scanned spec
    # ------------------------------------------------------------------

    def _add_channel(
        self, file_spec: dict[str, Any], scanned_spec: dict[str, Any], channel_ref: str
    ) -> None:
        name = last_ref_segment(channel_ref)
        channels = file_spec.get("channels")
        if not isinstance(channels, dict):
            channels = {}
            file_spec["channels"] = channels
        if name in channels:
            return
        channel = (scanned_spec.get("channels") or {}).get(name)
        if not isinstance(channel, dict):
            return
        channels[name] = copy.deepcopy(channel)
        for message_ref in (channel.get("messages") or {}).values():
            if isinstance(message_ref, dict) and message_ref.get("$ref"):
                self._add_message(file_spec, scanned_spec, message_ref["$ref"])

    def _add_operation_messages(
        self, file_spec: dict[str, Any], scanned_spec: dict[str, Any], operation: dict[str, Any]
    ) -> None:
        refs = list(operation.get("messages") or [])
        reply = operation.get("reply")
        if isinstance(reply, dict):
            refs.extend(reply.get("messages") or [])
        for ref in refs:
            if isinstance(ref, dict) and ref.get("$ref"):
                self._add_message(file_spec, scanned_spec, ref["$ref"])

    def _add_message(
        self, file_spec: dict[str, Any], scanned_spec: dict[str, Any], ref: str
    ) -> None:
        full_name = extract_message_name(ref)
        if not full_name:
            return
        name = simple_name(full_name) or full_name
        messages = _section(_section(file_spec, "components"), "messages")
        if name in messages:
            return
        message = ((scanned_spec.get("components") or {}).get("messages") or {}).get(full_name)
        if not isinstance(message, dict):
            return
        messages[name] = copy.deepcopy(message)

        payload = message.get("payload")
        if isinstance(payload, dict):
            schema = payload.get("schema")
            if isinstance(schema, dict) and schema.get("$ref"):
                self._add_schema(file_spec, scanned_spec, schema["$ref"])
        headers = message.get("headers")
        if isinstance(headers, dict) and headers.get("$ref"):
            self._add_schema(file_spec, scanned_spec, headers["$ref"])

    @staticmethod
    def _add_schema(file_spec: dict[str, Any], scanned_spec: dict[str, Any], ref: str) -> None:
        if not ref.startswith(SCHEMA_REF_PREFIX):
            return
        full_name = ref[len(SCHEMA_REF_PREFIX):]
        name = simple_name(full_name) or full_name
        schemas = _section(_section(file_spec, "components"), "schemas")
        if name in schemas:
            return
        schema = ((scanned_spec.get("components") or {}).get("schemas") or {}).get(full_name)
        if isinstance(schema, dict):
            schemas[name] = copy.deepcopy(schema)
