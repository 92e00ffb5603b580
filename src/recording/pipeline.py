"""End-to-end session pipeline: materialize -> notify -> upload -> transcribe -> complete."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from src.config import get_settings
from src.pipeline_config import (
    PipelineConfig,
    ProcessingStatus,
    transcription_trial_flag,
)
from src.recording.cleanup import temp_artifacts
from src.recording.errors import PartialFailure
from src.recording.materializer import materialize
from src.recording.models import PipelineOutcome, Session, TranscriptionJob
from src.recording.notifier import NotificationClient
from src.recording.uploader import UploadClient, asset_key_for
from src.transcription.orchestrator import TranscriptionOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

_TERMINAL = (ProcessingStatus.COMPLETE, ProcessingStatus.FAILED)


class RecordingPipeline:
    """Processes finalized recordings, one independent run per session."""

    def __init__(
        self,
        uploader: UploadClient,
        notifier: NotificationClient,
        orchestrator: TranscriptionOrchestrator,
        temp_dir: str | None = None,
    ) -> None:
        self.uploader = uploader
        self.notifier = notifier
        self.orchestrator = orchestrator
        self.temp_dir = temp_dir

    async def run(self, session: Session, recording: bytes) -> PipelineOutcome:
        """Process ``recording`` for ``session`` and return the terminal outcome.

        Materialization and upload failures end the session as FAILED.
        Transcription failures are reported as a :class:`PartialFailure` on an
        otherwise COMPLETE outcome. The temp file is removed on every path,
        including cancellation.
        """
        session.status = ProcessingStatus.PROCESSING
        try:
            async with temp_artifacts(self.temp_dir) as artifacts:
                path = artifacts.path_for(f"{session.token}-{os.path.basename(session.filename)}")
                return await self._run_stages(session, recording, path)
        except Exception as exc:
            logger.exception("Error processing video %s", session.key)
            session.status = ProcessingStatus.FAILED
            return PipelineOutcome(status=ProcessingStatus.FAILED, error=exc)
        finally:
            if session.status not in _TERMINAL:
                session.status = ProcessingStatus.FAILED

    async def _run_stages(self, session: Session, recording: bytes, path: str) -> PipelineOutcome:
        await materialize(recording, path)

        context = await self.notifier.notify_processing_start(
            session.user_id or "", session.filename
        )
        # The backend's plan decides the transcription branch, not the session's.
        session.plan = context.plan
        if context.workspace_id is not None:
            session.workspace_id = context.workspace_id

        upload = await self.uploader.upload(path, asset_key_for(session.filename))

        job: TranscriptionJob | None = None
        trial = transcription_trial_flag(session.plan)
        if trial is not None:
            session.status = ProcessingStatus.TRANSCRIBING
            job = await self.orchestrator.run(
                TranscriptionJob(
                    video_url=upload.url,
                    user_id=session.user_id or "",
                    filename=session.filename,
                    trial=trial,
                    workspace_id=session.workspace_id,
                )
            )
        else:
            logger.info("Plan %r does not include transcription; skipping", session.plan)

        await self.notifier.notify_complete(session.user_id or "", session.filename, upload)
        session.status = ProcessingStatus.COMPLETE

        error = None
        if job is not None and job.failed:
            stage = job.failed_stage.value if job.failed_stage else "unknown"
            error = PartialFailure(f"Transcription failed during {stage}")
        return PipelineOutcome(
            status=ProcessingStatus.COMPLETE, upload=upload, transcription=job, error=error
        )


@lru_cache(maxsize=1)
def get_pipeline() -> RecordingPipeline:
    """Build the process-wide pipeline from settings."""
    settings = get_settings()
    config = PipelineConfig.from_settings(settings)
    notifier = NotificationClient(settings.next_api_host, config)
    return RecordingPipeline(
        uploader=UploadClient(
            settings.cloudinary_name,
            settings.cloudinary_key,
            settings.cloudinary_secret,
            settings.cloudinary_folder,
            config,
        ),
        notifier=notifier,
        orchestrator=get_orchestrator(settings, config, notifier),
        temp_dir=settings.temp_dir or None,
    )
