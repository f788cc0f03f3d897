"""Obtain the spec derived from running code (the "scanned" spec).

For REST the host FastAPI app's own ``openapi()`` document is used
in-process, or a document is fetched over HTTP when a scan URL is
configured. Routes mark their implementation state with :func:`api_state`::

    @app.get("/users", openapi_extra=api_state(ApiState.IMPLEMENTING, owner="kim"))
    async def list_users(): ...
"""
from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import Any, Callable

import httpx
import yaml

from src.shared.constants import HTTP_METHODS, X_PROGRESS, X_RESPONSE, X_TAG
from src.spec_engine.services.yaml_store import load_yaml

logger = logging.getLogger(__name__)

# Paths served by the spec engine itself
CONTROL_PREFIX = "/ouro"


class ApiState(str, Enum):
    """Implementation state a developer declares on a route."""
    IMPLEMENTING = "IMPLEMENTING"
    BUG_FIXING = "BUG_FIXING"
    COMPLETED = "COMPLETED"


_STATE_TAGS = {
    ApiState.IMPLEMENTING: "implementing",
    ApiState.BUG_FIXING: "bugfix",
}


def api_state(
    state: ApiState | str,
    owner: str | None = None,
    response: bool = False,
) -> dict[str, Any]:
    """Build ``openapi_extra`` marking a route's implementation state.

    Args:
        state: ``IMPLEMENTING`` and ``BUG_FIXING`` keep the route mocked;
            ``COMPLETED`` lets the sync pipeline compare it with the spec.
        owner: Developer responsible for the route.
        response: Also compare the route's declared responses.

    Returns:
        A dict suitable for FastAPI's ``openapi_extra`` argument.
    """
    state = ApiState(state)
    if state is ApiState.COMPLETED:
        extra: dict[str, Any] = {X_PROGRESS: "completed", X_TAG: "none"}
    else:
        extra = {X_PROGRESS: "mock", X_TAG: _STATE_TAGS[state]}
    if owner:
        extra["x-ouroboros-owner"] = owner
    if response:
        extra[X_RESPONSE] = "use"
    return extra


def fetch_spec(url: str, timeout: float) -> dict[str, Any] | None:
    """GET a JSON or YAML spec document; failures are logged and yield None."""
    try:
        response = httpx.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to fetch scanned spec: url=%s error=%s", url, exc)
        return None

    content_type = response.headers.get("content-type", "")
    try:
        if "yaml" in content_type:
            document = load_yaml(response.text)
        else:
            document = response.json()
    except (ValueError, yaml.YAMLError) as exc:
        logger.warning("Scanned spec could not be parsed: url=%s error=%s", url, exc)
        return None
    if not isinstance(document, dict):
        logger.warning("Scanned spec root is not an object: url=%s", url)
        return None
    return document


def normalize_scanned_rest(document: dict[str, Any]) -> dict[str, Any]:
    """Drop the control API's own paths and FastAPI's generated 422 responses."""
    paths = document.get("paths") or {}
    kept: dict[str, Any] = {}
    for url, item in paths.items():
        if url == CONTROL_PREFIX or url.startswith(CONTROL_PREFIX + "/"):
            continue
        if isinstance(item, dict):
            for method in HTTP_METHODS:
                operation = item.get(method)
                if isinstance(operation, dict):
                    responses = operation.get("responses")
                    if isinstance(responses, dict) and "422" in responses:
                        body = str(responses["422"])
                        if "HTTPValidationError" in body:
                            del responses["422"]
        kept[url] = item
    document["paths"] = kept

    schemas = (document.get("components") or {}).get("schemas")
    if isinstance(schemas, dict):
        for name in ("HTTPValidationError", "ValidationError"):
            schemas.pop(name, None)
    return document


class SpecScanner:
    """Produces scanned REST and WebSocket specs."""

    def __init__(
        self,
        rest_url: str = "",
        websocket_url: str = "",
        timeout: float = 5.0,
        openapi_provider: Callable[[], dict[str, Any]] | None = None,
    ) -> None:
        self._rest_url = rest_url
        self._websocket_url = websocket_url
        self._timeout = timeout
        self._openapi_provider = openapi_provider

    def scan_rest(self) -> dict[str, Any] | None:
        if self._rest_url:
            document = fetch_spec(self._rest_url, self._timeout)
        elif self._openapi_provider is not None:
            try:
                document = copy.deepcopy(self._openapi_provider())
            except Exception as exc:
                logger.warning("In-process OpenAPI generation failed: %s", exc)
                return None
        else:
            return None
        if document is None:
            return None
        return normalize_scanned_rest(document)

    def scan_websocket(self) -> dict[str, Any] | None:
        if not self._websocket_url:
            return None
        return fetch_spec(self._websocket_url, self._timeout)
