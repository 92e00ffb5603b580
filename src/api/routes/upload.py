"""Upload endpoint: process a complete recording sent as a multipart file."""

from __future__ import annotations

import logging
import os
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from src.api.models import UploadResponse
from src.config import settings
from src.pipeline_config import ProcessingStatus
from src.recording.models import Session, SessionKey
from src.recording.pipeline import get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/upload", response_model=UploadResponse)
async def upload_recording(
    file: Annotated[UploadFile, File(...)],
    user_id: Annotated[str | None, Form(alias="userId")] = None,
    clerk_id: Annotated[str | None, Form(alias="clerkId")] = None,
    plan: Annotated[str | None, Form()] = None,
    workspace_id: Annotated[str | None, Form(alias="workspaceId")] = None,
) -> UploadResponse | JSONResponse:
    """Run the recording pipeline for an already-assembled file.

    The backend's processing reply, not the submitted ``plan``, decides
    whether the recording is transcribed.
    """
    owner = (user_id or clerk_id or "").strip()
    if not owner:
        raise HTTPException(status_code=400, detail="userId is required")

    raw = await file.read()
    if len(raw) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB.",
        )
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    filename = os.path.basename(file.filename or "")
    if not filename:
        raise HTTPException(status_code=400, detail="Uploaded file has no filename")

    session = Session(
        key=SessionKey("upload", filename),
        user_id=owner,
        plan=plan,
        workspace_id=workspace_id,
    )
    outcome = await get_pipeline().run(session, raw)

    if outcome.status is not ProcessingStatus.COMPLETE:
        logger.error("Error while uploading %s: %s", filename, outcome.error)
        return JSONResponse(
            status_code=500,
            content=UploadResponse(status=500, message="Something went wrong").model_dump(),
        )
    return UploadResponse(status=200, message="File uploaded successfully")
