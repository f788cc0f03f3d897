"""Request-side comparison of a file operation against its scanned counterpart."""
from __future__ import annotations

from collections import Counter
from typing import Any

from src.shared.constants import X_DIFF, X_PROGRESS, X_REQ_LOG, X_TAG
from src.shared.utils import last_ref_segment


def _count_schema(
    schema: Any, name: str, counts: Counter, flattened: dict[str, Counter]
) -> None:
    if not isinstance(schema, dict) or not name:
        return
    ref = schema.get("$ref")
    if ref:
        ref_counts = flattened.get(last_ref_segment(ref) or "")
        if ref_counts:
            counts.update(ref_counts)
        return
    schema_type = schema.get("type")
    if schema_type:
        if schema.get("format") == "binary":
            counts[f"{name}:binary"] += 1
        else:
            counts[f"{name}:{schema_type}"] += 1


def collect_request_counts(
    operation: dict[str, Any] | None, flattened: dict[str, Counter]
) -> Counter:
    """Count ``field:type`` keys over non-path parameters and request body schemas.

    A body schema with inline properties contributes one key per property;
    any other body schema is counted under the name ``body``.
    """
    counts: Counter = Counter()
    if not operation:
        return counts

    for param in operation.get("parameters") or []:
        if not isinstance(param, dict):
            continue
        if str(param.get("in", "")).lower() == "path":
            continue
        _count_schema(param.get("schema"), param.get("name") or "", counts, flattened)

    body = operation.get("requestBody")
    content = body.get("content") if isinstance(body, dict) else None
    if isinstance(content, dict):
        for media in content.values():
            if not isinstance(media, dict):
                continue
            schema = media.get("schema")
            if not isinstance(schema, dict):
                continue
            properties = schema.get("properties")
            if isinstance(properties, dict) and properties:
                for prop_name, prop in properties.items():
                    _count_schema(prop, prop_name, counts, flattened)
            else:
                _count_schema(schema, "body", counts, flattened)
    return counts


def build_request_log(file_counts: Counter, scan_counts: Counter) -> str:
    """Describe every ``field:type`` key whose counts differ."""
    lines = ["Request type count mismatch"]
    for key in sorted(set(file_counts) | set(scan_counts)):
        spec_count = file_counts.get(key, 0)
        scan_count = scan_counts.get(key, 0)
        if spec_count == scan_count:
            continue
        field_name, _, field_type = key.partition(":")
        display = f"{field_name}({field_type})" if field_type else field_name
        if spec_count == 0:
            lines.append(f" - {display} is not in the spec (scan={scan_count})")
        elif scan_count == 0:
            lines.append(f" - {display} was not found by the scan (spec={spec_count})")
        else:
            lines.append(f" - {display} counts differ (spec={spec_count}, scan={scan_count})")
    return "\n".join(lines)


def compare_request(
    file_op: dict[str, Any],
    scan_op: dict[str, Any],
    file_flattened: dict[str, Counter],
    scan_flattened: dict[str, Counter],
) -> bool:
    """Mark *file_op* according to whether its request matches the scan.

    Returns:
        True when the request shapes match.
    """
    file_counts = collect_request_counts(file_op, file_flattened)
    scan_counts = collect_request_counts(scan_op, scan_flattened)
    file_counts = +file_counts
    scan_counts = +scan_counts

    file_op[X_TAG] = "none"
    if file_counts != scan_counts:
        file_op[X_DIFF] = "request"
        file_op[X_PROGRESS] = "mock"
        file_op[X_REQ_LOG] = build_request_log(file_counts, scan_counts)
        return False

    file_op[X_DIFF] = "none"
    file_op[X_PROGRESS] = "completed"
    file_op.pop(X_REQ_LOG, None)
    return True
