"""Cloudinary upload client for finished recordings."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from src.pipeline_config import PipelineConfig
from src.recording.errors import UploadError
from src.recording.models import UploadResult
from src.recording.retry import call_with_retry

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_BYTES = 8_000_000

# Derivatives are generated asynchronously by Cloudinary; never awaited here.
DEFAULT_TRANSFORMS: list[dict[str, Any]] = [
    {"width": 1280, "height": 720, "crop": "limit", "quality": "auto"},
    {"width": 854, "height": 480, "crop": "limit", "quality": "auto"},
]

VIDEO_SUFFIX = ".webm"
AUDIO_SUFFIX = ".mp3"


def asset_key_for(filename: str) -> str:
    """Public id for a recording: the filename without its extension."""
    return re.sub(r"\.[^/.]+$", "", filename)


def audio_url_for(video_url: str) -> str:
    """URL of the audio derivative Cloudinary serves for ``video_url``."""
    if video_url.endswith(VIDEO_SUFFIX):
        return video_url[: -len(VIDEO_SUFFIX)] + AUDIO_SUFFIX
    return video_url.replace(VIDEO_SUFFIX, AUDIO_SUFFIX)


def _is_retryable_upload_error(exc: BaseException) -> bool:
    return isinstance(exc, (cloudinary.exceptions.GeneralError, cloudinary.exceptions.RateLimited))


class UploadClient:
    """Pushes materialized recordings to Cloudinary.

    The SDK is synchronous, so each call runs in a worker thread.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str,
        config: PipelineConfig | None = None,
    ) -> None:
        self.folder = folder
        self.config = config or PipelineConfig()
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    def _upload_sync(
        self, local_path: str, asset_key: str, transforms: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return cloudinary.uploader.upload_large(
            local_path,
            resource_type="video",
            public_id=asset_key,
            folder=self.folder,
            chunk_size=UPLOAD_CHUNK_BYTES,
            eager=transforms,
            eager_async=True,
            timeout=self.config.upload_timeout,
        )

    async def upload(
        self,
        local_path: str,
        asset_key: str,
        transform_spec: list[dict[str, Any]] | None = None,
    ) -> UploadResult:
        """Upload ``local_path`` as a video asset and return its canonical location.

        Raises:
            UploadError: The file is missing or the upload failed after retries.
        """
        if not os.path.exists(local_path):
            raise UploadError(f"Recording not found at {local_path}")
        transforms = DEFAULT_TRANSFORMS if transform_spec is None else transform_spec

        try:
            response = await call_with_retry(
                lambda: asyncio.to_thread(self._upload_sync, local_path, asset_key, transforms),
                # bounded by the SDK timeout; a worker thread cannot be cancelled
                timeout=None,
                attempts=self.config.retry_attempts,
                backoff=self.config.retry_backoff,
                retry_if=_is_retryable_upload_error,
                description=f"Cloudinary upload of {asset_key}",
            )
        except Exception as exc:
            raise UploadError(f"Upload of {asset_key} failed: {exc}") from exc

        secure_url = response.get("secure_url")
        public_id = response.get("public_id")
        if not secure_url or not public_id:
            raise UploadError(f"Upload of {asset_key} returned no secure_url/public_id")

        logger.info("Video uploaded to Cloudinary: %s", secure_url)
        return UploadResult(url=str(secure_url), asset_id=str(public_id))
