"""Tests for per-session chunk buffering and assembly."""

from __future__ import annotations

import asyncio
import random

import pytest

from src.recording.collector import ChunkCollector
from src.recording.errors import BufferLimitExceeded, EmptyRecording, SessionFinalized
from src.recording.models import SessionKey

MB = 1024 * 1024


def make_collector(per_session: int = 10 * MB, total: int = 100 * MB) -> ChunkCollector:
    return ChunkCollector(max_session_bytes=per_session, max_buffered_bytes=total)


class TestReassembly:
    @pytest.mark.parametrize("count", [1, 2, 17])
    def test_finalize_concatenates_in_arrival_order(self, count: int) -> None:
        chunks = [bytes([i]) * (i + 3) for i in range(count)]

        async def scenario() -> bytes:
            collector = make_collector()
            for chunk in chunks:
                await collector.append("s1", chunk)
            return await collector.finalize("s1")

        assert asyncio.run(scenario()) == b"".join(chunks)

    def test_finalize_clears_buffer(self) -> None:
        async def scenario() -> ChunkCollector:
            collector = make_collector()
            await collector.append("s1", b"abc")
            await collector.finalize("s1")
            return collector

        collector = asyncio.run(scenario())
        assert collector.buffered_bytes == 0
        assert collector.sessions() == []

    def test_chunks_are_copied_on_append(self) -> None:
        async def scenario() -> bytes:
            collector = make_collector()
            chunk = bytearray(b"abc")
            await collector.append("s1", chunk)
            chunk[:] = b"xyz"
            return await collector.finalize("s1")

        assert asyncio.run(scenario()) == b"abc"


class TestEmptyAndRepeatedFinalize:
    def test_finalize_unknown_session_raises_empty_recording(self) -> None:
        with pytest.raises(EmptyRecording):
            asyncio.run(make_collector().finalize("missing"))

    def test_finalize_empty_buffer_raises_empty_recording(self) -> None:
        async def scenario() -> None:
            collector = make_collector()
            await collector.append("s1", b"")
            await collector.finalize("s1")

        with pytest.raises(EmptyRecording):
            asyncio.run(scenario())

    def test_second_finalize_is_rejected(self) -> None:
        async def scenario() -> None:
            collector = make_collector()
            await collector.append("s1", b"data")
            await collector.finalize("s1")
            await collector.finalize("s1")

        with pytest.raises(SessionFinalized):
            asyncio.run(scenario())

    def test_append_after_finalize_is_rejected(self) -> None:
        async def scenario() -> None:
            collector = make_collector()
            await collector.append("s1", b"data")
            await collector.finalize("s1")
            await collector.append("s1", b"late")

        with pytest.raises(SessionFinalized):
            asyncio.run(scenario())


class TestIsolation:
    def test_interleaved_sessions_never_see_each_others_chunks(self) -> None:
        """Two recordings streamed concurrently with random interleaving."""
        key_a = SessionKey("conn-a", "recording.webm")
        key_b = SessionKey("conn-b", "recording.webm")
        chunks_a = [f"A{i:03d}".encode() for i in range(200)]
        chunks_b = [f"B{i:03d}".encode() for i in range(200)]

        async def producer(collector: ChunkCollector, key: SessionKey, chunks: list[bytes]) -> None:
            rng = random.Random(str(key))
            for chunk in chunks:
                await collector.append(key, chunk)
                if rng.random() < 0.5:
                    await asyncio.sleep(0)

        async def scenario() -> tuple[bytes, bytes]:
            collector = make_collector()
            await asyncio.gather(
                producer(collector, key_a, chunks_a),
                producer(collector, key_b, chunks_b),
            )
            return await collector.finalize(key_a), await collector.finalize(key_b)

        recording_a, recording_b = asyncio.run(scenario())
        assert recording_a == b"".join(chunks_a)
        assert recording_b == b"".join(chunks_b)
        assert b"B" not in recording_a
        assert b"A" not in recording_b

    def test_finalize_waits_for_in_flight_append(self) -> None:
        async def scenario() -> bytes:
            collector = make_collector()
            await collector.append("s1", b"first")
            buf = collector._buffers["s1"]
            await buf.lock.acquire()
            finalize = asyncio.create_task(collector.finalize("s1"))
            await asyncio.sleep(0)
            assert not finalize.done()
            buf.chunks.append(b"-second")
            buf.size += len(b"-second")
            buf.lock.release()
            return await finalize

        assert asyncio.run(scenario()) == b"first-second"

    def test_discard_only_touches_one_session(self) -> None:
        async def scenario() -> tuple[ChunkCollector, bytes]:
            collector = make_collector()
            await collector.append("s1", b"one")
            await collector.append("s2", b"two")
            assert collector.discard("s1") is True
            return collector, await collector.finalize("s2")

        collector, recording = asyncio.run(scenario())
        assert recording == b"two"
        assert collector.discard("s1") is False
        assert collector.buffered_bytes == 0


class TestLimits:
    def test_per_session_limit(self) -> None:
        async def scenario() -> ChunkCollector:
            collector = make_collector(per_session=8)
            await collector.append("s1", b"12345")
            with pytest.raises(BufferLimitExceeded):
                await collector.append("s1", b"6789")
            return collector

        collector = asyncio.run(scenario())
        assert collector.buffered_bytes == 5

    def test_global_limit_spans_sessions(self) -> None:
        async def scenario() -> None:
            collector = make_collector(per_session=8, total=10)
            await collector.append("s1", b"12345678")
            await collector.append("s2", b"12")
            await collector.append("s3", b"1")

        with pytest.raises(BufferLimitExceeded):
            asyncio.run(scenario())

    def test_finalize_releases_global_budget(self) -> None:
        async def scenario() -> int:
            collector = make_collector(per_session=8, total=8)
            await collector.append("s1", b"12345678")
            await collector.finalize("s1")
            return await collector.append("s2", b"12345678")

        assert asyncio.run(scenario()) == 8
