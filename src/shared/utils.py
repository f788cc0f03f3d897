"""Shared utility functions."""
from __future__ import annotations

from typing import Any

from src.shared.constants import SCHEMA_REF_PREFIX


def simple_name(name: str | None) -> str | None:
    """Return the segment after the last ``.`` (``com.acme.User`` -> ``User``)."""
    if not name:
        return name
    return name.rsplit(".", 1)[-1]


def schema_ref_name(ref: Any) -> str | None:
    """Extract ``User`` from ``#/components/schemas/User``; None for other refs."""
    if isinstance(ref, str) and ref.startswith(SCHEMA_REF_PREFIX):
        name = ref[len(SCHEMA_REF_PREFIX):]
        return name or None
    return None


def to_schema_ref(name: str) -> str:
    """Expand a bare schema name to a full ``$ref`` string."""
    if name.startswith(SCHEMA_REF_PREFIX):
        return name
    return SCHEMA_REF_PREFIX + name


def last_ref_segment(ref: str | None) -> str | None:
    """Return the part after the last ``/`` of a JSON reference."""
    if not ref:
        return None
    idx = ref.rfind("/")
    if idx == -1 or idx == len(ref) - 1:
        return ref
    return ref[idx + 1:]
