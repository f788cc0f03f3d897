"""Spec Engine service FastAPI application."""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI

from src.shared.config import SpecEngineConfig
from src.shared.constants import SPEC_ENGINE_SERVICE_NAME, VERSION
from src.shared.errors import register_exception_handlers
from src.shared.locks import REST_SPEC_LOCK, WEBSOCKET_SPEC_LOCK
from src.shared.logging import TraceIDMiddleware, setup_logging
from src.spec_engine.mock.loader import MockLoader
from src.spec_engine.mock.middleware import MockMiddleware
from src.spec_engine.mock.registry import MockRegistry
from src.spec_engine.routers.health import router as health_router
from src.spec_engine.routers.mock import router as mock_router
from src.spec_engine.routers.rest_specs import router as rest_specs_router
from src.spec_engine.routers.schemas import router as schemas_router
from src.spec_engine.routers.websocket import router as websocket_router
from src.spec_engine.services.asyncapi_enricher import AsyncApiEnricher
from src.spec_engine.services.rest_enricher import RestSpecEnricher
from src.spec_engine.services.rest_spec_service import RestApiSpecService
from src.spec_engine.services.rest_sync import RestSyncPipeline
from src.spec_engine.services.schema_service import SchemaService
from src.spec_engine.services.spec_manager import Protocol, ProtocolHandler, SpecManager
from src.spec_engine.services.spec_scanner import SpecScanner
from src.spec_engine.services.websocket_sync import WebSocketSyncPipeline
from src.spec_engine.services.ws_channel_manager import WebSocketChannelService
from src.spec_engine.services.ws_message_service import WebSocketMessageService
from src.spec_engine.services.ws_operation_service import WebSocketOperationService
from src.spec_engine.services.ws_schema_service import WebSocketSchemaService
from src.spec_engine.services.yaml_store import AsyncApiDocumentStore, RestDocumentStore


def create_app(
    config: SpecEngineConfig | None = None,
    openapi_provider: Callable[[], dict[str, Any]] | None = None,
) -> FastAPI:
    """Build the spec engine app.

    Args:
        config: Settings; read from the environment when omitted.
        openapi_provider: Source of the scanned REST spec when no scan URL
            is configured. Defaults to this app's own ``openapi()``.
    """
    config = config or SpecEngineConfig()
    logger = setup_logging(SPEC_ENGINE_SERVICE_NAME, config.log_level)

    rest_store = RestDocumentStore(
        config.rest_spec_path, config.server_url, config.server_description
    )
    websocket_store = AsyncApiDocumentStore(config.websocket_spec_path)
    registry = MockRegistry()
    loader = MockLoader(rest_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan - reconcile both specs and load mocks."""
        app.state.start_time = time.time()

        results = await asyncio.to_thread(manager.initialize)
        app.state.init_results = {protocol.value: ok for protocol, ok in results.items()}
        count = await asyncio.to_thread(lambda: registry.reload(loader.load()))

        logger.info(
            "Service started: name=%s version=%s rest=%s websocket=%s mock_endpoints=%d",
            SPEC_ENGINE_SERVICE_NAME, VERSION,
            config.rest_spec_path, config.websocket_spec_path, count,
        )
        yield
        logger.info("Service stopped: name=%s", SPEC_ENGINE_SERVICE_NAME)

    app = FastAPI(
        title="Ouroboros Spec Engine",
        version=VERSION,
        lifespan=lifespan,
    )

    scanner = SpecScanner(
        rest_url=config.scan_url,
        websocket_url=config.websocket_scan_url,
        timeout=config.scan_timeout,
        openapi_provider=openapi_provider or app.openapi,
    )
    manager = SpecManager(
        [
            ProtocolHandler(
                protocol=Protocol.REST,
                store=rest_store,
                lock=REST_SPEC_LOCK,
                enricher=RestSpecEnricher(rest_store),
                pipeline=RestSyncPipeline(),
                scan=scanner.scan_rest,
            ),
            ProtocolHandler(
                protocol=Protocol.WEBSOCKET,
                store=websocket_store,
                lock=WEBSOCKET_SPEC_LOCK,
                enricher=AsyncApiEnricher(websocket_store),
                pipeline=WebSocketSyncPipeline(),
                scan=scanner.scan_websocket,
            ),
        ]
    )

    def _reload_mocks(protocol: Protocol) -> None:
        if protocol is Protocol.REST:
            registry.reload(loader.load())

    manager.add_listener(_reload_mocks)

    app.state.config = config
    app.state.rest_store = rest_store
    app.state.websocket_store = websocket_store
    app.state.spec_manager = manager
    app.state.mock_registry = registry
    app.state.mock_loader = loader
    app.state.rest_spec_service = RestApiSpecService(rest_store, REST_SPEC_LOCK, manager)
    app.state.rest_schema_service = SchemaService(rest_store, REST_SPEC_LOCK, manager)
    app.state.ws_operation_service = WebSocketOperationService(
        websocket_store, WEBSOCKET_SPEC_LOCK, manager
    )
    app.state.ws_message_service = WebSocketMessageService(
        websocket_store, WEBSOCKET_SPEC_LOCK, manager
    )
    app.state.ws_schema_service = WebSocketSchemaService(
        websocket_store, WEBSOCKET_SPEC_LOCK, manager
    )
    app.state.ws_channel_service = WebSocketChannelService(
        websocket_store, WEBSOCKET_SPEC_LOCK, manager
    )

    app.add_middleware(MockMiddleware, registry=registry, enabled=config.mock_enabled)
    app.add_middleware(TraceIDMiddleware)
    register_exception_handlers(app)

    # schemas before rest-specs so /schemas is not taken as an operation id
    app.include_router(health_router)
    app.include_router(schemas_router)
    app.include_router(rest_specs_router)
    app.include_router(websocket_router)
    app.include_router(mock_router)
    return app


app = create_app()
