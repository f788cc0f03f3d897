"""Response-side comparison of a file operation against its scanned counterpart."""
from __future__ import annotations

import logging
from typing import Any

from src.shared.constants import X_DIFF, X_PROGRESS, X_RES_LOG
from src.shared.utils import schema_ref_name

logger = logging.getLogger(__name__)


def _content_reason(content_type: str, message: str) -> str:
    return f"Content '{content_type}': {message}" if content_type else message


def compare_schema_nodes(
    scan_schema: Any,
    file_schema: Any,
    content_type: str,
    schema_matches: dict[str, bool],
) -> str | None:
    """Compare two response schemas; return a mismatch reason or None."""
    if scan_schema is None and file_schema is None:
        return None
    if not isinstance(scan_schema, dict) or not isinstance(file_schema, dict):
        return _content_reason(content_type, "schema defined on one side only")

    scan_ref = scan_schema.get("$ref")
    file_ref = file_schema.get("$ref")
    if scan_ref is not None or file_ref is not None:
        if scan_ref != file_ref:
            return _content_reason(
                content_type, f"$ref differs (scan={scan_ref}, spec={file_ref})"
            )
        name = schema_ref_name(scan_ref)
        if name is not None and schema_matches.get(name) is False:
            return _content_reason(content_type, f"referenced schema '{name}' does not match")
        return None

    if scan_schema.get("type") != file_schema.get("type"):
        return _content_reason(
            content_type,
            f"type differs (scan={scan_schema.get('type')}, spec={file_schema.get('type')})",
        )
    return None


def _schemas(content: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    return [
        (media_type, media["schema"])
        for media_type, media in content.items()
        if isinstance(media, dict) and isinstance(media.get("schema"), dict)
    ]


def _compare_content(
    scan_content: Any, file_content: Any, schema_matches: dict[str, bool]
) -> str | None:
    scan_empty = not isinstance(scan_content, dict) or not scan_content
    file_empty = not isinstance(file_content, dict) or not file_content
    if scan_empty and file_empty:
        return None
    if scan_empty:
        return "response body not found by the scan"
    if file_empty:
        return "response body missing from the spec"

    scan_schemas = _schemas(scan_content)
    file_schemas = _schemas(file_content)

    # Every schema on one side needs a matching schema on the other side
    for content_type, scan_schema in scan_schemas:
        last = None
        for _, file_schema in file_schemas:
            last = compare_schema_nodes(scan_schema, file_schema, content_type, schema_matches)
            if last is None:
                break
        else:
            return last or _content_reason(content_type, "scanned schema does not match the spec")
    for content_type, file_schema in file_schemas:
        last = None
        for scan_type, scan_schema in scan_schemas:
            last = compare_schema_nodes(scan_schema, file_schema, scan_type, schema_matches)
            if last is None:
                break
        else:
            return last or _content_reason(content_type, "schema exists only in the spec")
    return None


def compare_responses(
    file_op: dict[str, Any],
    scan_op: dict[str, Any],
    schema_matches: dict[str, bool],
) -> bool:
    """Mark *file_op* according to whether its responses match the scan.

    A mismatch moves ``diff`` from ``none`` to ``response`` (or ``request`` to
    ``both``); a match sets ``progress=completed`` only when no request diff
    is pending.

    Returns:
        True when the responses match.
    """
    scan_responses = scan_op.get("responses") or {}
    file_responses = file_op.get("responses") or {}
    reasons: list[str] = []

    if scan_responses and not file_responses:
        reasons.append("the scan declares responses but the spec has none")
    elif file_responses and not scan_responses:
        reasons.append("the spec declares responses that the scan does not have")
    elif scan_responses and file_responses:
        for status, scan_response in scan_responses.items():
            file_response = file_responses.get(status)
            if file_response is None:
                reasons.append(f"Status {status}: response missing from the spec")
                continue
            mismatch = _compare_content(
                (scan_response or {}).get("content"),
                (file_response or {}).get("content"),
                schema_matches,
            )
            if mismatch is not None:
                reasons.append(f"Status {status}: {mismatch}")
        for status in file_responses:
            if status not in scan_responses:
                reasons.append(f"Status {status}: response not found by the scan")

    if reasons:
        file_op[X_PROGRESS] = "mock"
        diff = file_op.get(X_DIFF)
        if diff == "none":
            file_op[X_DIFF] = "response"
        elif diff == "request":
            file_op[X_DIFF] = "both"
        file_op[X_RES_LOG] = "\n".join(reasons)
        return False

    if file_op.get(X_DIFF) == "none":
        file_op[X_PROGRESS] = "completed"
    file_op.pop(X_RES_LOG, None)
    return True
