"""Staged transcription of an uploaded recording.

FETCHING -> TRANSCRIBING -> ENRICHING -> REPORTING -> DONE, or FAILED at any
stage. Transcription is best-effort: failures are logged and recorded on the
job, never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable

import httpx

from src.config import Settings
from src.pipeline_config import PipelineConfig, TranscriptionState
from src.recording.cleanup import TempArtifacts, temp_artifacts
from src.recording.errors import NetworkError, NoTranscript
from src.recording.materializer import materialize
from src.recording.models import TranscriptionJob
from src.recording.notifier import NotificationClient
from src.recording.retry import call_with_retry
from src.recording.uploader import audio_url_for
from src.transcription.enrichment import Summarizer, TitleGenerator
from src.transcription.stt import SpeechToText, build_transcript, get_stt_client

logger = logging.getLogger(__name__)

TITLE_PLACEHOLDER = "Generate a title"
SUMMARY_PLACEHOLDER = "Generate a summary"

# Statuses Cloudinary returns while a derivative is still being generated
NOT_READY_STATUS_CODES = {404, 423}


class TranscriptionOrchestrator:
    """Runs the transcription sub-pipeline for one recording at a time."""

    def __init__(
        self,
        stt: SpeechToText,
        summarizer: Summarizer,
        title_generator: TitleGenerator,
        notifier: NotificationClient,
        config: PipelineConfig | None = None,
        temp_dir: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.stt = stt
        self.summarizer = summarizer
        self.title_generator = title_generator
        self.notifier = notifier
        self.config = config or PipelineConfig()
        self.temp_dir = temp_dir
        self._transport = transport

    async def run(self, job: TranscriptionJob) -> TranscriptionJob:
        """Drive ``job`` through every stage and return it in DONE or FAILED."""
        async with temp_artifacts(self.temp_dir) as artifacts:
            try:
                job.state = TranscriptionState.FETCHING
                audio_path = await self._fetch(job, artifacts)

                job.state = TranscriptionState.TRANSCRIBING
                job.transcript = await self._transcribe(audio_path)
                logger.info("Transcript for %s: %s", job.filename, job.transcript)

                job.state = TranscriptionState.ENRICHING
                await self._enrich(job)

                job.state = TranscriptionState.REPORTING
                await self._report(job)

                job.state = TranscriptionState.DONE
            except NoTranscript:
                logger.error("No transcript generated for %s", job.filename)
                self._fail(job)
            except Exception:
                logger.exception(
                    "Transcription failed for %s during %s", job.filename, job.state.value
                )
                self._fail(job)
        return job

    @staticmethod
    def _fail(job: TranscriptionJob) -> None:
        job.failed_stage = job.state
        job.state = TranscriptionState.FAILED

    async def _fetch(self, job: TranscriptionJob, artifacts: TempArtifacts) -> str:
        audio_url = audio_url_for(job.video_url)
        job.audio_url = audio_url
        async with httpx.AsyncClient(transport=self._transport) as client:
            await self._wait_for_derivative(client, audio_url)

            async def download() -> bytes:
                response = await client.get(audio_url)
                response.raise_for_status()
                return response.content

            audio = await call_with_retry(
                download,
                timeout=self.config.request_timeout,
                attempts=self.config.retry_attempts,
                backoff=self.config.retry_backoff,
                description=f"download {audio_url}",
            )

        path = artifacts.path_for(f"audio-{uuid.uuid4().hex}.mp3")
        return await materialize(audio, path)

    async def _wait_for_derivative(self, client: httpx.AsyncClient, audio_url: str) -> None:
        """Poll until the audio derivative exists; transcoding runs asynchronously."""
        attempts = max(1, self.config.derivative_poll_attempts)
        for attempt in range(attempts):
            try:
                response = await asyncio.wait_for(
                    client.head(audio_url), timeout=self.config.request_timeout
                )
            except (httpx.TransportError, asyncio.TimeoutError) as exc:
                logger.warning("Readiness check for %s failed: %r", audio_url, exc)
            else:
                if response.is_success:
                    return
                code = response.status_code
                if code not in NOT_READY_STATUS_CODES and code < 500:
                    raise NetworkError(f"Audio derivative {audio_url} returned HTTP {code}")
                logger.info("Audio derivative %s not ready yet (HTTP %d)", audio_url, code)
            if attempt + 1 < attempts:
                await asyncio.sleep(self.config.retry_backoff * 2**attempt)
        raise NetworkError(f"Audio derivative {audio_url} not ready after {attempts} checks")

    async def _transcribe(self, audio_path: str) -> str:
        segments = await self.stt.transcribe(audio_path)
        if not segments:
            raise NoTranscript(f"Speech-to-text returned no segments for {audio_path}")
        transcript = build_transcript(segments)
        if not transcript:
            raise NoTranscript(f"Speech-to-text returned an empty transcript for {audio_path}")
        return transcript

    async def _enrich(self, job: TranscriptionJob) -> None:
        transcript = job.transcript or ""
        summary, title = await asyncio.gather(
            _best_effort(self.summarizer.summarize, transcript, "summary"),
            _best_effort(self.title_generator.generate, transcript, "title"),
        )
        job.summary = summary or SUMMARY_PLACEHOLDER
        job.title = title or TITLE_PLACEHOLDER
        logger.info("Title for %s: %s", job.filename, job.title)

    async def _report(self, job: TranscriptionJob) -> None:
        await self.notifier.notify_transcript(
            job.user_id,
            job.filename,
            {"title": job.title or TITLE_PLACEHOLDER, "description": job.summary or SUMMARY_PLACEHOLDER},
            job.transcript or "",
            job.trial,
            job.workspace_id,
        )


async def _best_effort(
    fn: Callable[[str], Awaitable[str | None]], transcript: str, what: str
) -> str | None:
    try:
        return await fn(transcript)
    except Exception:
        logger.exception("Generating %s failed; using placeholder", what)
        return None


def get_orchestrator(
    settings: Settings, config: PipelineConfig, notifier: NotificationClient
) -> TranscriptionOrchestrator:
    return TranscriptionOrchestrator(
        stt=get_stt_client(settings, config),
        summarizer=Summarizer(settings, config),
        title_generator=TitleGenerator(settings, config),
        notifier=notifier,
        config=config,
        temp_dir=settings.temp_dir or None,
    )
