"""WebSocket (AsyncAPI) spec authoring Pydantic v2 data models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.shared.models.rest_spec import RenamedItem


class ChannelMessageInfo(BaseModel):
    """Points at an existing channel (``channel_ref``) or creates one from ``address``."""
    address: str | None = None
    channel_ref: str | None = None
    messages: list[str] | None = None

    model_config = {"from_attributes": True}


class CreateOperationRequest(BaseModel):
    """Creates one operation per receive x reply combination."""
    protocol: str = Field(..., pattern=r"^(ws|wss)$")
    pathname: str = Field(..., min_length=1)
    receives: list[ChannelMessageInfo] | None = None
    replies: list[ChannelMessageInfo] | None = None

    model_config = {"from_attributes": True}


class UpdateOperationRequest(BaseModel):
    protocol: str | None = Field(default=None, pattern=r"^(ws|wss)$")
    pathname: str | None = None
    receive: ChannelMessageInfo | None = None
    reply: ChannelMessageInfo | None = None

    model_config = {"from_attributes": True}


class OperationResponse(BaseModel):
    """An operation as stored, with ``$ref`` keys exposed as ``ref``."""
    operation_name: str
    operation: dict[str, Any]
    tag: str | None = None

    model_config = {"from_attributes": True}


class CreateMessageRequest(BaseModel):
    message_name: str = Field(..., min_length=1)
    name: str | None = None
    content_type: str = "application/json"
    description: str | None = None
    headers: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class UpdateMessageRequest(BaseModel):
    name: str | None = None
    content_type: str | None = None
    description: str | None = None
    headers: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message_name: str
    name: str | None = None
    content_type: str | None = None
    description: str | None = None
    headers: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class ChannelResponse(BaseModel):
    channel_name: str
    channel: dict[str, Any]

    model_config = {"from_attributes": True}


class WebSocketImportYamlResponse(BaseModel):
    imported_channels: int
    imported_operations: int
    renamed: int
    summary: str
    renamed_list: list[RenamedItem] = Field(default_factory=list)

    model_config = {"from_attributes": True}
