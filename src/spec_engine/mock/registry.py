"""In-memory table of mockable endpoints, keyed by ``METHOD:path``."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResponseMeta:
    """One declared response: status, resolved schema and media type."""
    status_code: int
    schema: dict[str, Any] | None = None
    content_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EndpointMeta:
    id: str | None
    path: str
    method: str
    auth_headers: tuple[str, ...] = ()
    required_headers: tuple[str, ...] = ()
    required_params: tuple[str, ...] = ()
    request_body_required: bool = False
    request_body_schema: dict[str, Any] | None = None
    request_content_type: str | None = None
    responses: dict[int, ResponseMeta] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.path)


def endpoint_key(method: str, path: str) -> str:
    return f"{method.upper()}:{path}"


def _segments(path: str) -> list[str]:
    return [s for s in path.strip("/").split("/")]


def match_template(template: str, path: str) -> int | None:
    """Number of literal segments matched, or None when *path* does not fit.

    ``{param}`` matches exactly one non-empty segment.
    """
    template_parts = _segments(template)
    path_parts = _segments(path)
    if len(template_parts) != len(path_parts):
        return None
    literal = 0
    for expected, actual in zip(template_parts, path_parts):
        if expected.startswith("{") and expected.endswith("}"):
            if not actual:
                return None
            continue
        if expected != actual:
            return None
        literal += 1
    return literal


class MockRegistry:
    """Thread-safe endpoint table; ``reload`` swaps the whole table at once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._endpoints: dict[str, EndpointMeta] = {}

    def register(self, meta: EndpointMeta) -> None:
        with self._lock:
            self._endpoints[meta.key] = meta

    def find(self, path: str, method: str) -> EndpointMeta | None:
        """Exact ``METHOD:path`` first, then the template with most literal segments."""
        with self._lock:
            endpoints = self._endpoints
        if len(path) > 1:
            path = path.rstrip("/") or "/"
        exact = endpoints.get(endpoint_key(method, path))
        if exact is not None:
            return exact

        best: EndpointMeta | None = None
        best_score = -1
        method = method.upper()
        for meta in endpoints.values():
            if meta.method.upper() != method or "{" not in meta.path:
                continue
            score = match_template(meta.path, path)
            if score is not None and score > best_score:
                best, best_score = meta, score
        return best

    def clear(self) -> None:
        with self._lock:
            self._endpoints = {}

    def reload(self, endpoints: dict[str, EndpointMeta]) -> int:
        with self._lock:
            self._endpoints = dict(endpoints)
        logger.info("Mock registry reloaded: endpoints=%d", len(endpoints))
        return len(endpoints)

    def all(self) -> list[EndpointMeta]:
        with self._lock:
            return list(self._endpoints.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)
