from __future__ import annotations

import asyncio

from fastapi import APIRouter, File, Request, Response, UploadFile

from src.shared.models.rest_spec import (
    CreateRestApiRequest,
    ImportYamlResponse,
    RestApiSpecResponse,
    UpdateRestApiRequest,
)
from src.spec_engine.routers.uploads import read_upload

router = APIRouter(prefix="/ouro/rest-specs", tags=["rest-specs"])


@router.post("", response_model=RestApiSpecResponse, status_code=201)
async def create_rest_api_spec(body: CreateRestApiRequest, request: Request) -> RestApiSpecResponse:
    """Add an operation to the REST spec file."""
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.create_rest_api_spec, body)


@router.get("", response_model=list[RestApiSpecResponse])
async def list_rest_api_specs(request: Request) -> list[RestApiSpecResponse]:
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.get_all_rest_api_specs)


@router.post("/import", response_model=ImportYamlResponse)
async def import_yaml(request: Request, file: UploadFile = File(...)) -> ImportYamlResponse:
    """Merge an uploaded OpenAPI YAML file into the REST spec."""
    content = await read_upload(file)
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.import_yaml, file.filename, content)


@router.get("/export/yaml")
async def export_yaml(request: Request) -> Response:
    service = request.app.state.rest_spec_service
    content = await asyncio.to_thread(service.export_yaml)
    return Response(
        content=content,
        media_type="application/x-yaml",
        headers={"Content-Disposition": 'attachment; filename="ourorest.yml"'},
    )


@router.get("/{spec_id}", response_model=RestApiSpecResponse)
async def get_rest_api_spec(spec_id: str, request: Request) -> RestApiSpecResponse:
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.get_rest_api_spec, spec_id)


@router.put("/{spec_id}", response_model=RestApiSpecResponse)
async def update_rest_api_spec(
    spec_id: str, body: UpdateRestApiRequest, request: Request
) -> RestApiSpecResponse:
    """Update an operation; changing path or method moves it."""
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.update_rest_api_spec, spec_id, body)


@router.delete("/{spec_id}", status_code=204)
async def delete_rest_api_spec(spec_id: str, request: Request) -> Response:
    service = request.app.state.rest_spec_service
    await asyncio.to_thread(service.delete_rest_api_spec, spec_id)
    return Response(status_code=204)


@router.post("/{spec_id}/sync", response_model=RestApiSpecResponse)
async def sync_to_file(spec_id: str, request: Request) -> RestApiSpecResponse:
    """Promote an operation found only in the scanned spec into the file."""
    service = request.app.state.rest_spec_service
    return await asyncio.to_thread(service.sync_to_file, spec_id)
