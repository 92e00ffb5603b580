"""Pipeline configuration: status/strategy enums and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.config import Settings


class ProcessingStatus(str, Enum):
    """Lifecycle of a recording session."""

    PENDING = "pending"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    COMPLETE = "complete"
    FAILED = "failed"


class TranscriptionState(str, Enum):
    """Stages of a transcription job."""

    FETCHING = "fetching"
    TRANSCRIBING = "transcribing"
    ENRICHING = "enriching"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class PlanTier(str, Enum):
    """Plan tiers that authorize transcription."""

    FREE = "FREE"
    PRO = "PRO"


class SttProvider(str, Enum):
    """Available speech-to-text backends."""

    SPEECHMATICS = "speechmatics"
    ASSEMBLYAI = "assemblyai"


class SummaryProvider(str, Enum):
    """Available summarization backends."""

    HUGGINGFACE = "huggingface"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable tuning for outbound calls made by the pipeline.

    Defaults are conservative; ``from_settings`` mirrors the deployed values.
    """

    request_timeout: float = 30.0
    upload_timeout: float = 600.0
    retry_attempts: int = 3
    retry_backoff: float = 1.0
    derivative_poll_attempts: int = 6
    language: str = "en"
    stt_provider: SttProvider = SttProvider.SPEECHMATICS
    summary_provider: SummaryProvider = SummaryProvider.HUGGINGFACE

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            request_timeout=settings.request_timeout,
            upload_timeout=settings.upload_timeout,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff,
            derivative_poll_attempts=settings.derivative_poll_attempts,
            language=settings.transcription_language,
            stt_provider=SttProvider(settings.stt_provider),
            summary_provider=SummaryProvider(settings.summary_provider),
        )


def transcription_trial_flag(plan: str | None) -> bool | None:
    """Map a plan tier to the transcription trial flag.

    Returns ``True`` for FREE, ``False`` for PRO and ``None`` when the plan
    does not authorize transcription at all.
    """
    if plan == PlanTier.FREE.value:
        return True
    if plan == PlanTier.PRO.value:
        return False
    return None
