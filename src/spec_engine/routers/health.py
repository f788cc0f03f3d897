"""Health check endpoint for the Spec Engine."""
from __future__ import annotations

import asyncio
import time

from fastapi import APIRouter, Request

from src.shared.constants import SPEC_ENGINE_SERVICE_NAME, VERSION
from src.shared.models.common import HealthStatus

router = APIRouter(prefix="/ouro", tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> HealthStatus:
    """Health check endpoint."""

    def _check() -> HealthStatus:
        state = request.app.state
        rest_present = state.rest_store.file_exists()
        websocket_present = state.websocket_store.file_exists()
        init_results = getattr(state, "init_results", {})
        failed = [name for name, ok in init_results.items() if not ok]

        return HealthStatus(
            status="degraded" if failed else "healthy",
            service_name=SPEC_ENGINE_SERVICE_NAME,
            version=VERSION,
            rest_spec="present" if rest_present else "missing",
            websocket_spec="present" if websocket_present else "missing",
            mock_endpoints=len(state.mock_registry),
            uptime_seconds=time.time() - getattr(state, "start_time", time.time()),
            details={"failed_protocols": failed} if failed else {},
        )

    return await asyncio.to_thread(_check)
