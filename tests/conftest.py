"""Shared test fixtures for the spec engine test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from src.shared.config import SpecEngineConfig
from src.shared.locks import ReadWriteLock
from src.spec_engine.services.asyncapi_enricher import AsyncApiEnricher
from src.spec_engine.services.rest_enricher import RestSpecEnricher
from src.spec_engine.services.rest_sync import RestSyncPipeline
from src.spec_engine.services.spec_manager import Protocol, ProtocolHandler, SpecManager
from src.spec_engine.services.websocket_sync import WebSocketSyncPipeline
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore, RestDocumentStore


@pytest.fixture
def rest_store(tmp_path: Path) -> RestDocumentStore:
    return RestDocumentStore(tmp_path / "ouroboros" / "rest" / "ourorest.yml")


@pytest.fixture
def ws_store(tmp_path: Path) -> AsyncApiDocumentStore:
    return AsyncApiDocumentStore(tmp_path / "ouroboros" / "websocket" / "ourowebsocket.yml")


@pytest.fixture
def rest_lock() -> ReadWriteLock:
    return ReadWriteLock()


@pytest.fixture
def ws_lock() -> ReadWriteLock:
    return ReadWriteLock()


@pytest.fixture
def scanned() -> dict[Protocol, Any]:
    """Scanned specs served to the manager; tests may fill this in."""
    return {Protocol.REST: None, Protocol.WEBSOCKET: None}


@pytest.fixture
def manager(
    rest_store: RestDocumentStore,
    ws_store: AsyncApiDocumentStore,
    rest_lock: ReadWriteLock,
    ws_lock: ReadWriteLock,
    scanned: dict[Protocol, Any],
) -> SpecManager:
    return SpecManager(
        [
            ProtocolHandler(
                protocol=Protocol.REST,
                store=rest_store,
                lock=rest_lock,
                enricher=RestSpecEnricher(rest_store),
                pipeline=RestSyncPipeline(),
                scan=lambda: scanned[Protocol.REST],
            ),
            ProtocolHandler(
                protocol=Protocol.WEBSOCKET,
                store=ws_store,
                lock=ws_lock,
                enricher=AsyncApiEnricher(ws_store),
                pipeline=WebSocketSyncPipeline(),
                scan=lambda: scanned[Protocol.WEBSOCKET],
            ),
        ]
    )


@pytest.fixture
def user_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "id": {"type": "string", "format": "uuid"},
            "name": {"type": "string"},
        },
        "required": ["id", "name"],
    }


@pytest.fixture
def spec_config(tmp_path: Path) -> SpecEngineConfig:
    return SpecEngineConfig(spec_base_dir=str(tmp_path), scan_url="", mock_enabled=True)


@pytest.fixture
def client(spec_config: SpecEngineConfig) -> Generator[TestClient, None, None]:
    from src.spec_engine.main import create_app

    app = create_app(spec_config)
    with TestClient(app) as c:
        yield c
