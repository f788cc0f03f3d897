from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request

from src.shared.models.common import MockEndpointSummary, MockReloadResponse

router = APIRouter(prefix="/ouro/mock", tags=["mock"])


@router.post("/reload", response_model=MockReloadResponse)
async def reload_mock_endpoints(request: Request) -> MockReloadResponse:
    """Rebuild the mock registry from the REST spec file."""
    state = request.app.state

    def _reload() -> int:
        return state.mock_registry.reload(state.mock_loader.load())

    count = await asyncio.to_thread(_reload)
    return MockReloadResponse(endpoints=count)


@router.get("/endpoints", response_model=list[MockEndpointSummary])
async def list_mock_endpoints(request: Request) -> list[MockEndpointSummary]:
    registry = request.app.state.mock_registry
    return [
        MockEndpointSummary(
            id=meta.id,
            method=meta.method,
            path=meta.path,
            statuses=sorted(meta.responses),
            auth_headers=list(meta.auth_headers),
            required_headers=list(meta.required_headers),
            required_params=list(meta.required_params),
        )
        for meta in sorted(registry.all(), key=lambda m: (m.path, m.method))
    ]
