from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request, Response

from src.shared.models.rest_spec import CreateSchemaRequest, SchemaResponse, UpdateSchemaRequest

router = APIRouter(prefix="/ouro/rest-specs/schemas", tags=["schemas"])


@router.post("", response_model=SchemaResponse, status_code=201)
async def create_schema(body: CreateSchemaRequest, request: Request) -> SchemaResponse:
    service = request.app.state.rest_schema_service
    return await asyncio.to_thread(service.create_schema, body)


@router.get("", response_model=list[SchemaResponse])
async def list_schemas(request: Request) -> list[SchemaResponse]:
    service = request.app.state.rest_schema_service
    return await asyncio.to_thread(service.get_all_schemas)


@router.get("/{name}", response_model=SchemaResponse)
async def get_schema(name: str, request: Request) -> SchemaResponse:
    """Look up a schema by exact name, then by its trailing segment."""
    service = request.app.state.rest_schema_service
    return await asyncio.to_thread(service.get_schema, name)


@router.put("/{name}", response_model=SchemaResponse)
async def update_schema(name: str, body: UpdateSchemaRequest, request: Request) -> SchemaResponse:
    service = request.app.state.rest_schema_service
    return await asyncio.to_thread(service.update_schema, name, body)


@router.delete("/{name}", status_code=204)
async def delete_schema(name: str, request: Request) -> Response:
    service = request.app.state.rest_schema_service
    await asyncio.to_thread(service.delete_schema, name)
    return Response(status_code=204)
