"""Audio endpoint: transcribe an already uploaded recording."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.api.models import AudioRequest, AudioResponse
from src.pipeline_config import PlanTier, TranscriptionState
from src.recording.models import TranscriptionJob
from src.recording.pipeline import get_pipeline

router = APIRouter()


@router.post("/api/audio", response_model=AudioResponse)
async def transcribe_recording(request: AudioRequest) -> AudioResponse | JSONResponse:
    """Fetch the audio derivative of ``videoUrl`` and run transcription.

    FREE plans report through the trial path; every other plan through the
    paid path. Only a failure to fetch the audio is surfaced as an error;
    later stages are best-effort.
    """
    job = TranscriptionJob(
        video_url=request.video_url,
        user_id=request.clerk_id,
        filename=request.video_url,
        trial=request.plan == PlanTier.FREE.value,
        workspace_id=request.workspace_id,
    )
    job = await get_pipeline().orchestrator.run(job)

    if job.failed and job.failed_stage is TranscriptionState.FETCHING:
        return JSONResponse(
            status_code=500,
            content=AudioResponse(data="Error in getting video url").model_dump(),
        )
    return AudioResponse(data="Video uploaded successfully")
