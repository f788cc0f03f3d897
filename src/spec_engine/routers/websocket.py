"""AsyncAPI (WebSocket/STOMP) spec endpoints."""
from __future__ import annotations

import asyncio

from fastapi import APIRouter, File, Request, Response, UploadFile

from src.shared.models.rest_spec import CreateSchemaRequest, SchemaResponse, UpdateSchemaRequest
from src.shared.models.websocket_spec import (
    ChannelResponse,
    CreateMessageRequest,
    CreateOperationRequest,
    MessageResponse,
    OperationResponse,
    UpdateMessageRequest,
    UpdateOperationRequest,
    WebSocketImportYamlResponse,
)
from src.spec_engine.routers.uploads import read_upload

router = APIRouter(prefix="/ouro/websocket-specs", tags=["websocket-specs"])


# ----------------------------------------------------------------------
# operations
# ----------------------------------------------------------------------


@router.post("/operations", response_model=list[OperationResponse], status_code=201)
async def create_operations(
    body: CreateOperationRequest, request: Request
) -> list[OperationResponse]:
    """Create one operation per receive/reply combination."""
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.create_operations, body)


@router.get("/operations", response_model=list[OperationResponse])
async def list_operations(request: Request) -> list[OperationResponse]:
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.get_all_operations)


@router.get("/operations/{operation_id}", response_model=OperationResponse)
async def get_operation(operation_id: str, request: Request) -> OperationResponse:
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.get_operation, operation_id)


@router.put("/operations/{operation_id}", response_model=OperationResponse)
async def update_operation(
    operation_id: str, body: UpdateOperationRequest, request: Request
) -> OperationResponse:
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.update_operation, operation_id, body)


@router.delete("/operations/{operation_id}", status_code=204)
async def delete_operation(operation_id: str, request: Request) -> Response:
    service = request.app.state.ws_operation_service
    await asyncio.to_thread(service.delete_operation, operation_id)
    return Response(status_code=204)


@router.post("/operations/{operation_id}/sync", response_model=OperationResponse)
async def sync_operation(operation_id: str, request: Request) -> OperationResponse:
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.sync_to_file, operation_id)


@router.post("/import", response_model=WebSocketImportYamlResponse)
async def import_yaml(
    request: Request, file: UploadFile = File(...)
) -> WebSocketImportYamlResponse:
    """Merge an uploaded AsyncAPI YAML file into the WebSocket spec."""
    content = await read_upload(file)
    service = request.app.state.ws_operation_service
    return await asyncio.to_thread(service.import_yaml, file.filename, content)


@router.get("/export/yaml")
async def export_yaml(request: Request) -> Response:
    service = request.app.state.ws_operation_service
    content = await asyncio.to_thread(service.export_yaml)
    return Response(
        content=content,
        media_type="application/x-yaml",
        headers={"Content-Disposition": 'attachment; filename="ourowebsocket.yml"'},
    )


# ----------------------------------------------------------------------
# messages
# ----------------------------------------------------------------------


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def create_message(body: CreateMessageRequest, request: Request) -> MessageResponse:
    service = request.app.state.ws_message_service
    return await asyncio.to_thread(service.create_message, body)


@router.get("/messages", response_model=list[MessageResponse])
async def list_messages(request: Request) -> list[MessageResponse]:
    service = request.app.state.ws_message_service
    return await asyncio.to_thread(service.get_all_messages)


@router.get("/messages/{name}", response_model=MessageResponse)
async def get_message(name: str, request: Request) -> MessageResponse:
    service = request.app.state.ws_message_service
    return await asyncio.to_thread(service.get_message, name)


@router.put("/messages/{name}", response_model=MessageResponse)
async def update_message(name: str, body: UpdateMessageRequest, request: Request) -> MessageResponse:
    service = request.app.state.ws_message_service
    return await asyncio.to_thread(service.update_message, name, body)


@router.delete("/messages/{name}", status_code=204)
async def delete_message(name: str, request: Request) -> Response:
    service = request.app.state.ws_message_service
    await asyncio.to_thread(service.delete_message, name)
    return Response(status_code=204)


# ----------------------------------------------------------------------
# schemas
# ----------------------------------------------------------------------


@router.post("/schemas", response_model=SchemaResponse, status_code=201)
async def create_schema(body: CreateSchemaRequest, request: Request) -> SchemaResponse:
    service = request.app.state.ws_schema_service
    return await asyncio.to_thread(service.create_schema, body)


@router.get("/schemas", response_model=list[SchemaResponse])
async def list_schemas(request: Request) -> list[SchemaResponse]:
    service = request.app.state.ws_schema_service
    return await asyncio.to_thread(service.get_all_schemas)


@router.get("/schemas/{name}", response_model=SchemaResponse)
async def get_schema(name: str, request: Request) -> SchemaResponse:
    service = request.app.state.ws_schema_service
    return await asyncio.to_thread(service.get_schema, name)


@router.put("/schemas/{name}", response_model=SchemaResponse)
async def update_schema(name: str, body: UpdateSchemaRequest, request: Request) -> SchemaResponse:
    service = request.app.state.ws_schema_service
    return await asyncio.to_thread(service.update_schema, name, body)


@router.delete("/schemas/{name}", status_code=204)
async def delete_schema(name: str, request: Request) -> Response:
    service = request.app.state.ws_schema_service
    await asyncio.to_thread(service.delete_schema, name)
    return Response(status_code=204)


# ----------------------------------------------------------------------
# channels
# ----------------------------------------------------------------------


@router.get("/channels", response_model=list[ChannelResponse])
async def list_channels(request: Request) -> list[ChannelResponse]:
    service = request.app.state.ws_channel_service
    return await asyncio.to_thread(service.get_all_channels)


@router.get("/channels/{name}", response_model=ChannelResponse)
async def get_channel(name: str, request: Request) -> ChannelResponse:
    service = request.app.state.ws_channel_service
    return await asyncio.to_thread(service.get_channel, name)
