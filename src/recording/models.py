"""Data models for recording sessions and their processing results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from src.pipeline_config import ProcessingStatus, TranscriptionState


@dataclass(frozen=True)
class SessionKey:
    """Stable identity of one recording: the connection plus the filename."""

    connection_id: str
    filename: str

    def __str__(self) -> str:
        return f"{self.connection_id}/{self.filename}"


@dataclass
class Session:
    """Server-side state for one in-progress recording.

    Chunks themselves live in the collector; this tracks everything else.
    """

    key: SessionKey
    user_id: str | None = None
    plan: str | None = None
    workspace_id: str | None = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    token: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def filename(self) -> str:
        return self.key.filename


@dataclass(frozen=True)
class UploadResult:
    """Canonical location of an uploaded recording."""

    url: str
    asset_id: str


@dataclass(frozen=True)
class ProcessingContext:
    """Authoritative plan/workspace values returned by the backend."""

    status: int | None
    plan: str | None = None
    workspace_id: str | None = None


@dataclass
class TranscriptionJob:
    """A transcription run for one uploaded recording."""

    video_url: str
    user_id: str
    filename: str
    trial: bool
    workspace_id: str | None = None
    audio_url: str | None = None
    transcript: str | None = None
    summary: str | None = None
    title: str | None = None
    state: TranscriptionState = TranscriptionState.FETCHING
    failed_stage: TranscriptionState | None = None

    @property
    def failed(self) -> bool:
        return self.state is TranscriptionState.FAILED


@dataclass
class PipelineOutcome:
    """Result of running the pipeline for one session."""

    status: ProcessingStatus
    upload: UploadResult | None = None
    transcription: TranscriptionJob | None = None
    error: Exception | None = None
