"""YAML document store for the REST (OpenAPI) and WebSocket (AsyncAPI) spec files.

Documents are handled as plain ``dict`` trees mirroring the YAML. Reads are
served from a cache keyed on the file's modification time and always hand
out deep copies, so callers can mutate freely; ``fresh=True`` bypasses the
cache. Writes go to a temporary file that atomically replaces the target, so
a document is never partially persisted.

Example usage::

    >>> from pathlib import Path
    >>> store = RestDocumentStore(Path("ouroboros/rest/ourorest.yml"))
    >>> doc = store.read_or_create_document()  # doctest: +SKIP
    >>> store.put_operation(doc, "/users", "get", {"responses": {}})  # doctest: +SKIP
    >>> store.write_document(doc)  # doctest: +SKIP
"""
from __future__ import annotations

import copy
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

import yaml

from src.shared.constants import (
    ASYNCAPI_VERSION,
    HTTP_METHODS,
    OPENAPI_VERSION,
    X_ID,
)
from src.shared.errors import NotFoundError, ParsingError

logger = logging.getLogger(__name__)


class _SpecLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates as plain strings."""


_SpecLoader.yaml_implicit_resolvers = {
    key: [r for r in resolvers if r[0] != "tag:yaml.org,2002:timestamp"]
    for key, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(text: str) -> Any:
    """Parse YAML text; mapping keys are normalised to strings (``200:`` -> ``"200"``)."""
    return _stringify_keys(yaml.load(text, Loader=_SpecLoader))


def dump_yaml(document: Any) -> str:
    """Serialise a document keeping insertion order."""
    return yaml.safe_dump(
        document,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def _stringify_keys(node: Any) -> Any:
    if isinstance(node, dict):
        return {str(k): _stringify_keys(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_stringify_keys(v) for v in node]
    return node


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


# ======================================================================
# Base store
# ======================================================================


class YamlDocumentStore:
    """File-backed YAML document with an mtime-keyed cache."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._cache_lock = threading.Lock()
        self._cached: dict[str, Any] | None = None
        self._cached_mtime: float | None = None

    @property
    def path(self) -> Path:
        return self._path

    def file_exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------
    # read / write
    # ------------------------------------------------------------------

    def read_yaml_content(self) -> str:
        """Return the raw persisted file."""
        if not self.file_exists():
            raise NotFoundError(
                f"The specification file does not exist: {self._path}", name=str(self._path)
            )
        try:
            return self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParsingError(f"{self._path.name} is not valid UTF-8: {exc}") from exc

    def read_document(self, fresh: bool = False) -> dict[str, Any]:
        """Load the document.

        Args:
            fresh: Bypass the cache and parse the file from disk.

        Returns:
            A deep copy of the document tree.

        Raises:
            NotFoundError: The file does not exist.
            ParsingError: The file is not valid YAML or its root is not a mapping.
        """
        if not self.file_exists():
            raise NotFoundError(
                f"The specification file does not exist: {self._path}", name=str(self._path)
            )
        mtime = self._path.stat().st_mtime
        if not fresh:
            with self._cache_lock:
                if self._cached is not None and self._cached_mtime == mtime:
                    return copy.deepcopy(self._cached)

        try:
            text = self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParsingError(f"{self._path.name} is not valid UTF-8: {exc}") from exc
        try:
            document = load_yaml(text)
        except yaml.YAMLError as exc:
            raise ParsingError(f"Failed to parse {self._path.name}: {exc}") from exc
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ParsingError(f"YAML root of {self._path.name} must be a mapping")

        with self._cache_lock:
            self._cached = copy.deepcopy(document)
            self._cached_mtime = mtime
        return document

    def read_or_create_document(self) -> dict[str, Any]:
        """Read the document fresh from disk, or build the default template."""
        if self.file_exists():
            document = self.read_document(fresh=True)
        else:
            document = self.default_document()
        self.ensure_required_fields(document)
        return document

    def write_document(self, document: dict[str, Any]) -> None:
        """Atomically replace the file with *document* and refresh the cache."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = dump_yaml(document)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        with self._cache_lock:
            self._cached = copy.deepcopy(document)
            self._cached_mtime = self._path.stat().st_mtime
        logger.debug("Wrote spec document: path=%s", self._path)

    def invalidate_cache(self) -> None:
        with self._cache_lock:
            self._cached = None
            self._cached_mtime = None

    # ------------------------------------------------------------------
    # template hooks
    # ------------------------------------------------------------------

    def default_document(self) -> dict[str, Any]:
        raise NotImplementedError

    def ensure_required_fields(self, document: dict[str, Any]) -> None:
        """Fill in top-level sections a freshly read document may lack."""

    # ------------------------------------------------------------------
    # shared accessors
    # ------------------------------------------------------------------

    @staticmethod
    def get_or_create_components(document: dict[str, Any]) -> dict[str, Any]:
        components = _as_dict(document.get("components"))
        if components is None:
            components = {}
            document["components"] = components
        return components

    def get_or_create_schemas(self, document: dict[str, Any]) -> dict[str, Any]:
        components = self.get_or_create_components(document)
        schemas = _as_dict(components.get("schemas"))
        if schemas is None:
            schemas = {}
            components["schemas"] = schemas
        return schemas

    @staticmethod
    def get_schemas(document: dict[str, Any]) -> dict[str, Any] | None:
        components = _as_dict(document.get("components"))
        if components is None:
            return None
        return _as_dict(components.get("schemas"))

    def get_schema(self, document: dict[str, Any], name: str) -> dict[str, Any] | None:
        schemas = self.get_schemas(document)
        if not schemas:
            return None
        return _as_dict(schemas.get(name))

    def schema_exists(self, document: dict[str, Any], name: str) -> bool:
        return self.get_schema(document, name) is not None

    def put_schema(self, document: dict[str, Any], name: str, schema: dict[str, Any]) -> None:
        self.get_or_create_schemas(document)[name] = schema

    def remove_schema(self, document: dict[str, Any], name: str) -> bool:
        schemas = self.get_schemas(document)
        if schemas is None or name not in schemas:
            return False
        del schemas[name]
        return True


# ======================================================================
# REST (OpenAPI)
# ======================================================================


class RestDocumentStore(YamlDocumentStore):
    """Store for the OpenAPI 3.1.0 file."""

    def __init__(
        self,
        path: str | Path,
        server_url: str = "http://localhost:8080",
        server_description: str = "Local Server",
    ) -> None:
        super().__init__(path)
        self._server_url = server_url
        self._server_description = server_description

    def default_document(self) -> dict[str, Any]:
        return {
            "openapi": OPENAPI_VERSION,
            "info": {"title": "API Documentation", "version": "1.0.0"},
            "servers": [{"url": self._server_url, "description": self._server_description}],
            "security": [],
            "paths": {},
            "components": {"schemas": {}},
        }

    def ensure_required_fields(self, document: dict[str, Any]) -> None:
        document.setdefault("openapi", OPENAPI_VERSION)
        document.setdefault("info", {"title": "API Documentation", "version": "1.0.0"})
        self.get_or_create_paths(document)
        self.get_or_create_schemas(document)

    @staticmethod
    def get_or_create_paths(document: dict[str, Any]) -> dict[str, Any]:
        paths = _as_dict(document.get("paths"))
        if paths is None:
            paths = {}
            document["paths"] = paths
        return paths

    def get_or_create_security_schemes(self, document: dict[str, Any]) -> dict[str, Any]:
        components = self.get_or_create_components(document)
        schemes = _as_dict(components.get("securitySchemes"))
        if schemes is None:
            schemes = {}
            components["securitySchemes"] = schemes
        return schemes

    @staticmethod
    def get_path(document: dict[str, Any], path: str) -> dict[str, Any] | None:
        paths = _as_dict(document.get("paths"))
        if paths is None:
            return None
        return _as_dict(paths.get(path))

    def get_operation(
        self, document: dict[str, Any], path: str, method: str
    ) -> dict[str, Any] | None:
        path_item = self.get_path(document, path)
        if path_item is None:
            return None
        return _as_dict(path_item.get(method.lower()))

    def operation_exists(self, document: dict[str, Any], path: str, method: str) -> bool:
        return self.get_operation(document, path, method) is not None

    def put_operation(
        self, document: dict[str, Any], path: str, method: str, operation: dict[str, Any]
    ) -> None:
        paths = self.get_or_create_paths(document)
        path_item = _as_dict(paths.get(path))
        if path_item is None:
            path_item = {}
            paths[path] = path_item
        path_item[method.lower()] = operation

    def remove_operation(self, document: dict[str, Any], path: str, method: str) -> bool:
        """Remove an operation; the path item goes too once it holds no methods."""
        path_item = self.get_path(document, path)
        if path_item is None or method.lower() not in path_item:
            return False
        del path_item[method.lower()]
        if not any(m in path_item for m in HTTP_METHODS):
            del document["paths"][path]
        return True

    @staticmethod
    def iter_operations(document: dict[str, Any]):
        """Yield ``(path, method, operation)`` for every HTTP operation."""
        paths = _as_dict(document.get("paths")) or {}
        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if method.lower() in HTTP_METHODS and isinstance(operation, dict):
                    yield path, method.lower(), operation

    def find_operation_by_id(
        self, document: dict[str, Any], operation_id: str
    ) -> tuple[str, str, dict[str, Any]] | None:
        for path, method, operation in self.iter_operations(document):
            if operation.get(X_ID) == operation_id:
                return path, method, operation
        return None


# ======================================================================
# WebSocket (AsyncAPI)
# ======================================================================


class AsyncApiDocumentStore(YamlDocumentStore):
    """Store for the AsyncAPI 3.0.0 file."""

    def default_document(self) -> dict[str, Any]:
        return {
            "asyncapi": ASYNCAPI_VERSION,
            "info": {"title": "WebSocket API Documentation", "version": "1.0.0"},
            "defaultContentType": "application/json",
            "servers": {},
            "channels": {},
            "operations": {},
            "components": {},
        }

    def ensure_required_fields(self, document: dict[str, Any]) -> None:
        defaults = self.default_document()
        for key, value in defaults.items():
            if document.get(key) is None:
                document[key] = value

    def _section(self, document: dict[str, Any], key: str) -> dict[str, Any]:
        section = _as_dict(document.get(key))
        if section is None:
            section = {}
            document[key] = section
        return section

    # messages -----------------------------------------------------------

    def get_or_create_messages(self, document: dict[str, Any]) -> dict[str, Any]:
        components = self.get_or_create_components(document)
        messages = _as_dict(components.get("messages"))
        if messages is None:
            messages = {}
            components["messages"] = messages
        return messages

    @staticmethod
    def get_messages(document: dict[str, Any]) -> dict[str, Any] | None:
        components = _as_dict(document.get("components"))
        if components is None:
            return None
        return _as_dict(components.get("messages"))

    def get_message(self, document: dict[str, Any], name: str) -> dict[str, Any] | None:
        messages = self.get_messages(document)
        if not messages:
            return None
        return _as_dict(messages.get(name))

    def message_exists(self, document: dict[str, Any], name: str) -> bool:
        return self.get_message(document, name) is not None

    def put_message(self, document: dict[str, Any], name: str, message: dict[str, Any]) -> None:
        self.get_or_create_messages(document)[name] = message

    def remove_message(self, document: dict[str, Any], name: str) -> bool:
        messages = self.get_messages(document)
        if messages is None or name not in messages:
            return False
        del messages[name]
        return True

    # operations ---------------------------------------------------------

    def get_or_create_operations(self, document: dict[str, Any]) -> dict[str, Any]:
        return self._section(document, "operations")

    @staticmethod
    def get_operations(document: dict[str, Any]) -> dict[str, Any] | None:
        return _as_dict(document.get("operations"))

    def get_operation(self, document: dict[str, Any], name: str) -> dict[str, Any] | None:
        operations = self.get_operations(document)
        if not operations:
            return None
        return _as_dict(operations.get(name))

    def operation_exists(self, document: dict[str, Any], name: str) -> bool:
        return self.get_operation(document, name) is not None

    def put_operation(self, document: dict[str, Any], name: str, operation: dict[str, Any]) -> None:
        self.get_or_create_operations(document)[name] = operation

    def remove_operation(self, document: dict[str, Any], name: str) -> bool:
        operations = self.get_operations(document)
        if operations is None or name not in operations:
            return False
        del operations[name]
        return True

    def find_operation_by_id(
        self, document: dict[str, Any], operation_id: str
    ) -> tuple[str, dict[str, Any]] | None:
        for name, operation in (self.get_operations(document) or {}).items():
            if isinstance(operation, dict) and operation.get(X_ID) == operation_id:
                return name, operation
        return None

    # channels -----------------------------------------------------------

    def get_or_create_channels(self, document: dict[str, Any]) -> dict[str, Any]:
        return self._section(document, "channels")

    @staticmethod
    def get_channels(document: dict[str, Any]) -> dict[str, Any] | None:
        return _as_dict(document.get("channels"))

    def get_channel(self, document: dict[str, Any], name: str) -> dict[str, Any] | None:
        channels = self.get_channels(document)
        if not channels:
            return None
        return _as_dict(channels.get(name))

    def channel_exists(self, document: dict[str, Any], name: str) -> bool:
        return self.get_channel(document, name) is not None

    def put_channel(self, document: dict[str, Any], name: str, channel: dict[str, Any]) -> None:
        self.get_or_create_channels(document)[name] = channel

    def remove_channel(self, document: dict[str, Any], name: str) -> bool:
        channels = self.get_channels(document)
        if channels is None or name not in channels:
            return False
        del channels[name]
        return True

    # servers ------------------------------------------------------------

    def get_or_create_servers(self, document: dict[str, Any]) -> dict[str, Any]:
        return self._section(document, "servers")

    def put_server(self, document: dict[str, Any], name: str, server: dict[str, Any]) -> None:
        self.get_or_create_servers(document)[name] = server
