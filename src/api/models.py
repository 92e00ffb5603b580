"""Pydantic request/response schemas for the recording API."""

from __future__ import annotations

from typing import Any

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field


class StreamMessage(BaseModel):
    """Envelope for every WebSocket frame: ``{"event": ..., "data": ...}``."""

    event: str
    data: Any = None


class ChunkEvent(BaseModel):
    """Payload of a ``video-chunks`` event. ``chunk`` is base64 on the wire."""

    chunk: Base64Bytes
    filename: str = Field(min_length=1)


class ProcessVideoEvent(BaseModel):
    """Payload of a ``process-video`` event."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class UploadErrorEvent(BaseModel):
    message: str


class UploadResponse(BaseModel):
    """Response body for the /api/upload endpoint."""

    status: int
    message: str


class AudioRequest(BaseModel):
    """Request body for the /api/audio endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    video_url: str = Field(alias="videoUrl", min_length=1)
    clerk_id: str = Field(alias="clerkId", min_length=1)
    plan: str | None = None
    workspace_id: str | None = Field(default=None, alias="workspaceId")


class AudioResponse(BaseModel):
    """Response body for the /api/audio endpoint."""

    data: str
