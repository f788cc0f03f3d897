"""CRUD for component schemas of the WebSocket spec."""
from __future__ import annotations

from src.shared.locks import ReadWriteLock
from src.spec_engine.services.schema_service import SchemaService
from src.spec_engine.services.spec_manager import Protocol, SpecManager
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore


class WebSocketSchemaService(SchemaService):
    """Message payload schemas live in the AsyncAPI document's components."""

    def __init__(
        self,
        store: AsyncApiDocumentStore,
        lock: ReadWriteLock,
        manager: SpecManager,
    ) -> None:
        super().__init__(store, lock, manager, protocol=Protocol.WEBSOCKET)
