"""Coordinates the per-protocol pipeline: enrich, scan, reconcile, persist, cache."""
from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol as TypingProtocol

from src.shared.locks import ReadWriteLock
from src.spec_engine.services.yaml_store import YamlDocumentStore

logger = logging.getLogger(__name__)


class Protocol(str, Enum):
    REST = "rest"
    WEBSOCKET = "websocket"


class _Enricher(TypingProtocol):
    def validate_and_enrich(self) -> Any: ...


class _Pipeline(TypingProtocol):
    def reconcile(
        self, file_spec: dict[str, Any] | None, scanned_spec: dict[str, Any] | None
    ) -> dict[str, Any] | None: ...


@dataclass
class ProtocolHandler:
    """Everything needed to keep one spec document in sync with code."""
    protocol: Protocol
    store: YamlDocumentStore
    lock: ReadWriteLock
    enricher: _Enricher
    pipeline: _Pipeline
    scan: Callable[[], dict[str, Any] | None]


class SpecManager:
    """Holds the reconciled spec per protocol.

    ``initialize`` runs once at startup; each handler runs inside its own
    error boundary so one broken document never blocks the other protocol.
    ``process_and_cache`` is called by the CRUD services after every
    mutation, while they hold the document's write lock.
    """

    def __init__(self, handlers: list[ProtocolHandler]) -> None:
        self._handlers = {h.protocol: h for h in handlers}
        self._order = [h.protocol for h in handlers]
        self._cache: dict[Protocol, dict[str, Any]] = {}
        self._scanned: dict[Protocol, dict[str, Any] | None] = {}
        self._cache_lock = threading.Lock()
        self._listeners: list[Callable[[Protocol], None]] = []

    def handler(self, protocol: Protocol) -> ProtocolHandler:
        handler = self._handlers.get(protocol)
        if handler is None:
            raise ValueError(f"Unsupported protocol: {protocol}")
        return handler

    def add_listener(self, listener: Callable[[Protocol], None]) -> None:
        """Register a callback run after a protocol's spec changes."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # startup
    # ------------------------------------------------------------------

    def initialize(self) -> dict[Protocol, bool]:
        """Run every handler in order; returns success per protocol."""
        results: dict[Protocol, bool] = {}
        for protocol in self._order:
            try:
                self._initialize_one(self._handlers[protocol])
                results[protocol] = True
            except Exception:
                logger.exception("Spec initialisation failed: protocol=%s", protocol.value)
                results[protocol] = False
        return results

    def _initialize_one(self, handler: ProtocolHandler) -> None:
        handler.enricher.validate_and_enrich()
        scanned = handler.scan()
        with self._cache_lock:
            self._scanned[handler.protocol] = scanned

        with handler.lock.write():
            file_spec = (
                handler.store.read_document(fresh=True) if handler.store.file_exists() else None
            )
            result = handler.pipeline.reconcile(file_spec, copy.deepcopy(scanned))
            if result is None:
                return
            handler.store.write_document(result)
            self._put(handler.protocol, result)
        logger.info(
            "Spec initialised: protocol=%s scanned=%s",
            handler.protocol.value, scanned is not None,
        )
        self._notify(handler.protocol)

    # ------------------------------------------------------------------
    # runtime
    # ------------------------------------------------------------------

    def rescan(self, protocol: Protocol) -> dict[str, Any] | None:
        handler = self.handler(protocol)
        scanned = handler.scan()
        with self._cache_lock:
            self._scanned[protocol] = scanned
        return copy.deepcopy(scanned)

    def scanned_spec(self, protocol: Protocol) -> dict[str, Any] | None:
        with self._cache_lock:
            return copy.deepcopy(self._scanned.get(protocol))

    def process_and_cache(self, protocol: Protocol, document: dict[str, Any]) -> dict[str, Any]:
        """Reconcile a mutated document against the last scan, persist and cache it.

        The caller must hold the protocol's write lock.
        """
        handler = self.handler(protocol)
        scanned = self.scanned_spec(protocol)
        result = handler.pipeline.reconcile(document, scanned)
        if result is None:
            result = document
        handler.store.write_document(result)
        self._put(protocol, result)
        self._notify(protocol)
        return copy.deepcopy(result)

    def get_spec(self, protocol: Protocol) -> dict[str, Any] | None:
        with self._cache_lock:
            cached = self._cache.get(protocol)
            return copy.deepcopy(cached) if cached is not None else None

    def _put(self, protocol: Protocol, document: dict[str, Any]) -> None:
        with self._cache_lock:
            self._cache[protocol] = copy.deepcopy(document)

    def _notify(self, protocol: Protocol) -> None:
        for listener in self._listeners:
            try:
                listener(protocol)
            except Exception:
                logger.exception("Spec change listener failed: protocol=%s", protocol.value)
