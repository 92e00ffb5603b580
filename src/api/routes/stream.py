"""WebSocket endpoint receiving live recordings as ordered chunks."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

import pydantic
from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from src.api.models import ChunkEvent, ProcessVideoEvent, StreamMessage, UploadErrorEvent
from src.config import settings
from src.pipeline_config import ProcessingStatus
from src.recording.collector import ChunkCollector
from src.recording.errors import (
    BufferLimitExceeded,
    EmptyRecording,
    SessionFinalized,
    ValidationError,
)
from src.recording.models import Session, SessionKey
from src.recording.pipeline import RecordingPipeline, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()

collector = ChunkCollector(
    max_session_bytes=settings.max_session_bytes,
    max_buffered_bytes=settings.max_buffered_bytes,
)

# Pipeline runs outlive the connection that started them.
_background_tasks: set[asyncio.Task[None]] = set()


class RecordingConnection:
    """One client connection; may carry several recordings keyed by filename."""

    def __init__(
        self, websocket: WebSocket, collector: ChunkCollector, pipeline: RecordingPipeline
    ) -> None:
        self.websocket = websocket
        self.collector = collector
        self.pipeline = pipeline
        self.connection_id = uuid.uuid4().hex
        self.sessions: dict[str, Session] = {}
        self._send_lock = asyncio.Lock()
        self._open = True

    async def emit(self, event: str, data: Any) -> bool:
        """Send an event to the client; returns False if the socket is gone."""
        if not self._open:
            return False
        try:
            async with self._send_lock:
                await self.websocket.send_json({"event": event, "data": data})
            return True
        except Exception:
            logger.warning("Could not send %s to connection %s", event, self.connection_id)
            return False

    async def emit_error(self, message: str) -> None:
        await self.emit("upload-error", UploadErrorEvent(message=message).model_dump())

    async def serve(self) -> None:
        logger.info("Socket is connected: %s", self.connection_id)
        await self.emit("connected", "hello")
        try:
            while True:
                frame = await self.websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                text = frame.get("text")
                if text is None:
                    await self.emit_error("Binary frames are not supported")
                    continue
                await self.handle(text)
        except WebSocketDisconnect:
            logger.info("Socket disconnected: %s", self.connection_id)
        finally:
            self.close()

    async def handle(self, text: str) -> None:
        try:
            envelope = StreamMessage.model_validate_json(text)
            if envelope.event == "video-chunks":
                await self.on_chunk(ChunkEvent.model_validate(envelope.data))
            elif envelope.event == "process-video":
                await self.on_process(ProcessVideoEvent.model_validate(envelope.data))
            else:
                logger.info("Ignoring unknown event %r", envelope.event)
        except pydantic.ValidationError as exc:
            logger.warning("Invalid event on %s: %s", self.connection_id, exc)
            await self.emit_error("Invalid event payload")

    def _session_for(self, filename: str) -> Session:
        session = self.sessions.get(filename)
        if session is None:
            session = Session(key=SessionKey(self.connection_id, filename))
            self.sessions[filename] = session
        return session

    async def on_chunk(self, event: ChunkEvent) -> None:
        session = self._session_for(event.filename)
        if session.status is not ProcessingStatus.PENDING:
            await self.emit_error("Failed to save video chunk")
            return
        try:
            size = await self.collector.append(session.key, event.chunk)
        except BufferLimitExceeded:
            logger.exception("Recording %s exceeds buffer limits", session.key)
            self.collector.discard(session.key)
            session.status = ProcessingStatus.FAILED
            await self.emit_error("Recording is too large")
            return
        except SessionFinalized:
            await self.emit_error("Failed to save video chunk")
            return
        logger.debug("Chunk saved for %s (%d bytes buffered)", session.key, size)

    async def on_process(self, event: ProcessVideoEvent) -> None:
        logger.info("Processing video %s for user %s", event.filename, event.user_id)
        session = self.sessions.get(event.filename)
        try:
            if session is None:
                raise ValidationError(f"No recording named {event.filename}")
            if session.status is not ProcessingStatus.PENDING:
                raise SessionFinalized(f"Session {session.key} is already finalized")
            session.user_id = event.user_id
            recording = await self.collector.finalize(session.key)
            session.status = ProcessingStatus.PROCESSING
        except (ValidationError, EmptyRecording, SessionFinalized) as exc:
            logger.warning("Cannot process %s: %s", event.filename, exc)
            await self.emit_error("Failed to process video")
            return

        task = asyncio.create_task(self._process(session, recording))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _process(self, session: Session, recording: bytes) -> None:
        try:
            outcome = await self.pipeline.run(session, recording)
            if outcome.status is ProcessingStatus.FAILED:
                await self.emit_error("Failed to process video")
        finally:
            self.collector.discard(session.key)
            if self.sessions.get(session.filename) is session:
                del self.sessions[session.filename]

    def close(self) -> None:
        """Drop buffers of recordings that never reached process-video."""
        self._open = False
        for session in list(self.sessions.values()):
            if session.status is ProcessingStatus.PENDING:
                self.collector.discard(session.key)
                session.status = ProcessingStatus.FAILED
                del self.sessions[session.filename]


@router.websocket("/ws")
async def recording_stream(websocket: WebSocket) -> None:
    await websocket.accept()
    connection = RecordingConnection(websocket, collector, get_pipeline())
    await connection.serve()
