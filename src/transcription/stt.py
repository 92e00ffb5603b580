"""Speech-to-text clients and transcript assembly.

Both providers return segments in Speechmatics ``json-v2`` shape::

    [{"alternatives": [{"content": "hello", "confidence": 0.98}, ...]}, ...]

so :func:`build_transcript` does not care which service produced them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Protocol

import httpx

from src.config import Settings
from src.pipeline_config import PipelineConfig, SttProvider
from src.recording.errors import NetworkError
from src.recording.retry import call_with_retry

logger = logging.getLogger(__name__)

Segment = dict[str, Any]


def build_transcript(segments: list[Segment]) -> str:
    """Join the best-scoring alternative of each segment with single spaces.

    Segments without alternatives are skipped. Alternatives without a
    confidence score rank lowest; ties keep the first alternative.
    """
    words: list[str] = []
    for segment in segments:
        alternatives = segment.get("alternatives") or []
        if not alternatives:
            continue
        best = max(alternatives, key=lambda alt: alt.get("confidence") or 0.0)
        content = best.get("content")
        if content:
            words.append(str(content))
    return " ".join(words)


class SpeechToText(Protocol):
    async def transcribe(self, audio_path: str) -> list[Segment]: ...


class SpeechmaticsClient:
    """Batch transcription over the Speechmatics REST API (submit, poll, fetch)."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        config: PipelineConfig | None = None,
        poll_interval: float = 5.0,
        job_timeout: float = 900.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.config = config or PipelineConfig()
        self.poll_interval = poll_interval
        self.job_timeout = job_timeout
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._transport = transport

    async def _request(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        async def send() -> httpx.Response:
            response = await client.request(method, f"{self.base_url}{path}", **kwargs)
            response.raise_for_status()
            return response

        return await call_with_retry(
            send,
            timeout=self.config.request_timeout,
            attempts=self.config.retry_attempts,
            backoff=self.config.retry_backoff,
            description=f"Speechmatics {method} {path}",
        )

    async def transcribe(self, audio_path: str) -> list[Segment]:
        job_config = {
            "type": "transcription",
            "transcription_config": {"language": self.config.language},
        }
        audio = await asyncio.to_thread(Path(audio_path).read_bytes)

        try:
            async with httpx.AsyncClient(headers=self._headers, transport=self._transport) as client:
                submitted = await self._request(
                    client,
                    "POST",
                    "/jobs/",
                    data={"config": json.dumps(job_config)},
                    files={"data_file": (os.path.basename(audio_path), audio, "audio/mpeg")},
                )
                job_id = submitted.json()["id"]
                logger.info("Started Speechmatics job %s for %s", job_id, audio_path)
                await self._wait_for_job(client, job_id)
                result = await self._request(
                    client, "GET", f"/jobs/{job_id}/transcript", params={"format": "json-v2"}
                )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Speechmatics request failed: {exc}") from exc

        return list(result.json().get("results") or [])

    async def _wait_for_job(self, client: httpx.AsyncClient, job_id: str) -> None:
        deadline = time.monotonic() + self.job_timeout
        while True:
            response = await self._request(client, "GET", f"/jobs/{job_id}")
            status = response.json().get("job", {}).get("status")
            if status == "done":
                return
            if status in ("rejected", "deleted", "expired"):
                raise NetworkError(f"Speechmatics job {job_id} ended with status {status}")
            if time.monotonic() >= deadline:
                raise NetworkError(f"Speechmatics job {job_id} timed out")
            await asyncio.sleep(self.poll_interval)


class AssemblyAIClient:
    """Transcription via the AssemblyAI SDK; each word becomes one segment."""

    def __init__(self, api_key: str, config: PipelineConfig | None = None) -> None:
        self.api_key = api_key
        self.config = config or PipelineConfig()

    def _transcribe_sync(self, audio_path: str) -> list[Segment]:
        import assemblyai as aai  # type: ignore[import-untyped]  # no stubs

        aai.settings.api_key = self.api_key
        transcriber = aai.Transcriber()
        config = aai.TranscriptionConfig(language_code=self.config.language)
        transcript = transcriber.transcribe(audio_path, config=config)
        if transcript.status == aai.TranscriptStatus.error:
            raise NetworkError(f"AssemblyAI transcription failed: {transcript.error}")
        return [
            {"alternatives": [{"content": w.text, "confidence": w.confidence}]}
            for w in transcript.words or []
        ]

    async def transcribe(self, audio_path: str) -> list[Segment]:
        # The SDK polls internally until the transcript is complete.
        return await asyncio.to_thread(self._transcribe_sync, audio_path)


def get_stt_client(settings: Settings, config: PipelineConfig) -> SpeechToText:
    """Build the speech-to-text client selected by ``config.stt_provider``."""
    if config.stt_provider is SttProvider.ASSEMBLYAI:
        return AssemblyAIClient(settings.assemblyai_api_key, config)
    return SpeechmaticsClient(
        settings.speechmatics_api_key,
        settings.speechmatics_url,
        config,
        poll_interval=settings.stt_poll_interval,
        job_timeout=settings.stt_timeout,
    )
