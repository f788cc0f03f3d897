"""Tests for the per-protocol spec manager."""
from __future__ import annotations

import pytest

from src.shared.locks import ReadWriteLock
from src.spec_engine.services.rest_sync import RestSyncPipeline
from src.spec_engine.services.spec_manager import Protocol, ProtocolHandler, SpecManager


class _BrokenEnricher:
    def validate_and_enrich(self):
        raise RuntimeError("disk on fire")


class TestInitialize:
    """Tests for SpecManager.initialize."""

    def test_creates_default_files(self, manager, rest_store, ws_store):
        results = manager.initialize()
        assert results == {Protocol.REST: True, Protocol.WEBSOCKET: True}
        assert rest_store.file_exists()
        assert ws_store.file_exists()

    def test_scan_reconciled_and_cached(self, manager, scanned, rest_store):
        scanned[Protocol.REST] = {
            "openapi": "3.1.0",
            "paths": {"/health": {"get": {"responses": {"200": {"description": "ok"}}}}},
        }
        manager.initialize()
        cached = manager.get_spec(Protocol.REST)
        assert cached["paths"]["/health"]["get"]["x-ouroboros-diff"] == "endpoint"
        on_disk = rest_store.read_document(fresh=True)
        assert "/health" in on_disk["paths"]

    def test_failure_isolated(self, rest_store, ws_store, manager):
        broken = SpecManager(
            [
                ProtocolHandler(
                    protocol=Protocol.REST,
                    store=rest_store,
                    lock=ReadWriteLock(),
                    enricher=_BrokenEnricher(),
                    pipeline=RestSyncPipeline(),
                    scan=lambda: None,
                ),
                manager.handler(Protocol.WEBSOCKET),
            ]
        )
        assert broken.initialize() == {Protocol.REST: False, Protocol.WEBSOCKET: True}


class TestRuntime:
    def test_process_and_cache_notifies(self, manager, rest_store):
        seen: list[Protocol] = []
        manager.add_listener(seen.append)
        document = rest_store.default_document()
        result = manager.process_and_cache(Protocol.REST, document)
        assert seen == [Protocol.REST]
        assert rest_store.file_exists()
        assert manager.get_spec(Protocol.REST) == result

    def test_cache_returns_copies(self, manager, rest_store):
        manager.process_and_cache(Protocol.REST, rest_store.default_document())
        manager.get_spec(Protocol.REST)["paths"]["/x"] = {}
        assert "/x" not in manager.get_spec(Protocol.REST)["paths"]

    def test_rescan(self, manager, scanned):
        scanned[Protocol.WEBSOCKET] = {"operations": {}}
        assert manager.rescan(Protocol.WEBSOCKET) == {"operations": {}}
        assert manager.scanned_spec(Protocol.WEBSOCKET) == {"operations": {}}

    def test_unknown_protocol(self):
        with pytest.raises(ValueError):
            SpecManager([]).handler(Protocol.REST)
