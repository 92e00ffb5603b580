"""Per-session chunk buffering and assembly."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable
from dataclasses import dataclass, field

from src.recording.errors import BufferLimitExceeded, EmptyRecording, SessionFinalized

logger = logging.getLogger(__name__)


@dataclass
class _SessionBuffer:
    chunks: list[bytes] = field(default_factory=list)
    size: int = 0
    finalized: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ChunkCollector:
    """Accumulates ordered binary fragments, one isolated buffer per session.

    Appends and finalize for the same session are serialized by that
    session's lock. Memory is bounded per session (``max_session_bytes``)
    and across all sessions (``max_buffered_bytes``).
    """

    def __init__(self, max_session_bytes: int, max_buffered_bytes: int) -> None:
        self.max_session_bytes = max_session_bytes
        self.max_buffered_bytes = max_buffered_bytes
        self._buffers: dict[Hashable, _SessionBuffer] = {}
        self._buffered_bytes = 0

    @property
    def buffered_bytes(self) -> int:
        return self._buffered_bytes

    def sessions(self) -> list[Hashable]:
        """Return the keys of sessions that still hold an open buffer."""
        return [key for key, buf in self._buffers.items() if not buf.finalized]

    def _buffer_for(self, session_id: Hashable) -> _SessionBuffer:
        # No await between lookup and insert, so creation is race-free.
        buf = self._buffers.get(session_id)
        if buf is None:
            buf = _SessionBuffer()
            self._buffers[session_id] = buf
        return buf

    async def append(self, session_id: Hashable, chunk: bytes) -> int:
        """Append ``chunk`` to the session's buffer and return its new size.

        Raises:
            SessionFinalized: The session was already finalized.
            BufferLimitExceeded: The chunk would exceed a memory limit.
        """
        buf = self._buffer_for(session_id)
        async with buf.lock:
            if buf.finalized:
                raise SessionFinalized(f"Session {session_id} is already finalized")
            size = len(chunk)
            if buf.size + size > self.max_session_bytes:
                raise BufferLimitExceeded(
                    f"Session {session_id} would exceed {self.max_session_bytes} bytes"
                )
            if self._buffered_bytes + size > self.max_buffered_bytes:
                raise BufferLimitExceeded(
                    f"Buffered recordings would exceed {self.max_buffered_bytes} bytes"
                )
            buf.chunks.append(bytes(chunk))
            buf.size += size
            self._buffered_bytes += size
            return buf.size

    async def finalize(self, session_id: Hashable) -> bytes:
        """Concatenate the session's chunks in arrival order and clear the buffer.

        Raises:
            EmptyRecording: No chunks were received for the session.
            SessionFinalized: Finalize was already called for the session.
        """
        buf = self._buffers.get(session_id)
        if buf is None:
            raise EmptyRecording(f"No chunks received for session {session_id}")
        async with buf.lock:
            if buf.finalized:
                raise SessionFinalized(f"Session {session_id} is already finalized")
            if buf.size == 0:
                raise EmptyRecording(f"No chunks received for session {session_id}")
            recording = b"".join(buf.chunks)
            self._release(buf)
            buf.finalized = True
        logger.info("Finalized session %s (%d bytes)", session_id, len(recording))
        return recording

    def discard(self, session_id: Hashable) -> bool:
        """Drop a session's buffer without producing a recording.

        Returns True if there was a buffer to drop.
        """
        buf = self._buffers.pop(session_id, None)
        if buf is None:
            return False
        self._release(buf)
        logger.info("Discarded buffer for session %s", session_id)
        return True

    def _release(self, buf: _SessionBuffer) -> None:
        self._buffered_bytes -= buf.size
        buf.chunks.clear()
        buf.size = 0
