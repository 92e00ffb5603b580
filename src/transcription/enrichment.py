"""Summary and title generation for finished transcripts."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import anthropic
import httpx
from anthropic import Anthropic
from anthropic.types import TextBlock
from google.api_core import exceptions as google_exceptions

from src.config import Settings
from src.pipeline_config import PipelineConfig, SummaryProvider
from src.recording.retry import call_with_retry

logger = logging.getLogger(__name__)

_BULLET_TITLE_RE = re.compile(r"^\s*\*\s*(.+)$", re.MULTILINE)

_TITLE_PROMPT = (
    "Generate one single, catchy and creative title for this {transcript}. "
    "Return only the title with no explanation or list, just the title itself."
)

_SUMMARY_SYSTEM_PROMPT = (
    "You summarise screen recordings from their transcript. Write a short, "
    "plain-prose description of what the recording covers in two or three "
    "sentences. Do not add headings or bullet points."
)


def _is_retryable_claude_error(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (anthropic.APIConnectionError, anthropic.RateLimitError, anthropic.InternalServerError),
    )


def _is_retryable_gemini_error(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (
            google_exceptions.DeadlineExceeded,
            google_exceptions.ServiceUnavailable,
            google_exceptions.ResourceExhausted,
            google_exceptions.TooManyRequests,
            google_exceptions.InternalServerError,
        ),
    )


def extract_title(text: str) -> str:
    """Pull the title out of generated text.

    If a line starts with a ``*`` bullet, the text after the marker wins;
    otherwise the whole text, trimmed, is the title.
    """
    match = _BULLET_TITLE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


class Summarizer:
    """Summarizes transcripts with the configured provider."""

    def __init__(
        self,
        settings: Settings,
        config: PipelineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.config = config or PipelineConfig()
        self._transport = transport

    async def summarize(self, transcript: str) -> str | None:
        if self.config.summary_provider is SummaryProvider.ANTHROPIC:
            return await call_with_retry(
                lambda: asyncio.to_thread(self._summarize_claude, transcript),
                timeout=None,
                attempts=self.config.retry_attempts,
                backoff=self.config.retry_backoff,
                retry_if=_is_retryable_claude_error,
                description="Claude summary",
            )
        return await self._summarize_huggingface(transcript)

    async def _summarize_huggingface(self, transcript: str) -> str | None:
        headers = {
            "Authorization": f"Bearer {self.settings.huggingface_api_key}",
            "Content-Type": "application/json",
        }

        async def send() -> httpx.Response:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.settings.summary_model_url,
                    json={"inputs": transcript},
                    headers=headers,
                )
                response.raise_for_status()
                return response

        response = await call_with_retry(
            send,
            timeout=self.config.request_timeout,
            attempts=self.config.retry_attempts,
            backoff=self.config.retry_backoff,
            description="Hugging Face summary",
        )
        data: Any = response.json()
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get("summary_text") or None
        return None

    def _summarize_claude(self, transcript: str) -> str | None:
        # call_with_retry owns the retry budget
        client = Anthropic(
            api_key=self.settings.anthropic_api_key,
            timeout=self.config.request_timeout,
            max_retries=0,
        )
        response = client.messages.create(
            model=self.settings.llm_model,
            max_tokens=512,
            system=_SUMMARY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": f"Transcript:\n\n{transcript}"}],
        )
        block = response.content[0]
        if not isinstance(block, TextBlock):
            raise ValueError(f"Expected TextBlock from Claude, got {type(block).__name__}")
        return block.text.strip() or None


class TitleGenerator:
    """Generates a recording title with Gemini."""

    def __init__(self, settings: Settings, config: PipelineConfig | None = None) -> None:
        self.settings = settings
        self.config = config or PipelineConfig()

    def _generate_sync(self, transcript: str) -> str:
        import google.generativeai as genai

        genai.configure(api_key=self.settings.gemini_api_key)  # type: ignore[attr-defined]
        model = genai.GenerativeModel(self.settings.title_model)  # type: ignore[attr-defined]
        response = model.generate_content(
            _TITLE_PROMPT.format(transcript=transcript),
            request_options={"timeout": self.config.request_timeout},
        )
        return str(response.text)

    async def generate(self, transcript: str) -> str | None:
        text = await call_with_retry(
            lambda: asyncio.to_thread(self._generate_sync, transcript),
            timeout=None,
            attempts=self.config.retry_attempts,
            backoff=self.config.retry_backoff,
            retry_if=_is_retryable_gemini_error,
            description="Gemini title",
        )
        return extract_title(text) or None
