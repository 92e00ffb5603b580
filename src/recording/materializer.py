"""Write assembled recordings to local temp files."""

from __future__ import annotations

import asyncio
import logging
import os

from src.recording.errors import RecordingIOError

logger = logging.getLogger(__name__)

WRITE_BLOCK_BYTES = 1024 * 1024


def _write_blocks(data: bytes, dest_path: str) -> None:
    view = memoryview(data)
    with open(dest_path, "wb") as fh:
        for offset in range(0, len(view), WRITE_BLOCK_BYTES):
            fh.write(view[offset : offset + WRITE_BLOCK_BYTES])


async def materialize(data: bytes, dest_path: str) -> str:
    """Stream ``data`` to ``dest_path`` without blocking the event loop.

    A partially written file is removed before the error propagates.

    Raises:
        RecordingIOError: The file could not be written.
    """
    try:
        await asyncio.to_thread(_write_blocks, data, dest_path)
    except OSError as exc:
        try:
            os.remove(dest_path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Could not remove partial file %s", dest_path)
        raise RecordingIOError(f"Failed to write recording to {dest_path}: {exc}") from exc
    logger.info("Saved recording to %s (%d bytes)", dest_path, len(data))
    return dest_path
