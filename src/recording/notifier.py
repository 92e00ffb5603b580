"""HTTP client for the backend that tracks recording lifecycle state."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.pipeline_config import PipelineConfig
from src.recording.models import ProcessingContext, UploadResult
from src.recording.retry import call_with_retry

logger = logging.getLogger(__name__)

SUCCESS_STATUS = 200


class NotificationClient:
    """Best-effort notifications to the recording backend.

    Failures are logged and reported through the returned status; nothing
    here raises into the pipeline.
    """

    def __init__(
        self,
        base_url: str,
        config: PipelineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.config = config or PipelineConfig()
        self._transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        """POST ``payload`` and return the JSON body, or None on any failure."""
        url = f"{self.base_url}{path}"

        async def send() -> httpx.Response:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(url, json=payload)
                if response.status_code >= 500 or response.status_code == 429:
                    response.raise_for_status()
                return response

        try:
            response = await call_with_retry(
                send,
                timeout=self.config.request_timeout,
                attempts=self.config.retry_attempts,
                backoff=self.config.retry_backoff,
                description=f"POST {path}",
            )
        except Exception:
            logger.exception("Backend call POST %s failed", path)
            return None

        if not response.is_success:
            logger.error("Backend call POST %s returned HTTP %d", path, response.status_code)
            return None
        try:
            body = response.json()
        except ValueError:
            logger.error("Backend call POST %s returned a non-JSON body", path)
            return None
        return body if isinstance(body, dict) else None

    async def notify_processing_start(self, user_id: str, filename: str) -> ProcessingContext:
        """Mark the recording as processing; the reply carries the authoritative plan."""
        body = await self._post(f"/recording/{user_id}/processing", {"filename": filename})
        if body is None:
            return ProcessingContext(status=None)
        context = ProcessingContext(
            status=body.get("status"),
            plan=body.get("plan"),
            workspace_id=body.get("workspaceId"),
        )
        if context.status != SUCCESS_STATUS:
            logger.error(
                "Something went wrong with creating the processing file for %s (status=%s)",
                filename,
                context.status,
            )
        return context

    async def notify_complete(
        self, user_id: str, filename: str, upload: UploadResult
    ) -> int | None:
        body = await self._post(
            f"/recording/{user_id}/complete",
            {"filename": filename, "videoUrl": upload.url, "videoId": upload.asset_id},
        )
        status = body.get("status") if body else None
        if status != SUCCESS_STATUS:
            logger.error(
                "Something went wrong when completing the processing stage for %s (status=%s)",
                filename,
                status,
            )
        return status

    async def notify_transcript(
        self,
        user_id: str,
        filename: str,
        content: dict[str, str],
        transcript: str,
        trial: bool,
        workspace_id: str | None,
    ) -> int | None:
        """Report title/summary/transcript. One call shape for trial and paid plans."""
        body = await self._post(
            f"/recording/{user_id}/transcribe",
            {
                "filename": filename,
                "content": content,
                "transcript": transcript,
                "trial": trial,
                "workspaceId": workspace_id,
            },
        )
        status = body.get("status") if body else None
        if status != SUCCESS_STATUS:
            logger.error(
                "Something went wrong with creating the title and description for %s (status=%s)",
                filename,
                status,
            )
        return status
