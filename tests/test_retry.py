"""Tests for the timeout/retry wrapper around outbound calls."""

from __future__ import annotations

import asyncio
import threading
import time

import httpx
import pytest

from src.recording.retry import call_with_retry, is_transient


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.com")
    return httpx.HTTPStatusError("err", request=request, response=httpx.Response(code, request=request))


class TestIsTransient:
    def test_transport_and_timeouts(self) -> None:
        assert is_transient(httpx.ConnectError("down"))
        assert is_transient(asyncio.TimeoutError())

    def test_status_codes(self) -> None:
        assert is_transient(_status_error(503))
        assert is_transient(_status_error(429))
        assert not is_transient(_status_error(400))
        assert not is_transient(_status_error(404))

    def test_other_errors(self) -> None:
        assert not is_transient(ValueError("bad"))


class TestCallWithRetry:
    def test_retries_transient_failures_until_success(self) -> None:
        calls = {"n": 0}

        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise httpx.ConnectError("down")
            return "ok"

        result = asyncio.run(call_with_retry(flaky, timeout=1.0, attempts=3, backoff=0.0))
        assert result == "ok"
        assert calls["n"] == 3

    def test_gives_up_after_attempts(self) -> None:
        calls = {"n": 0}

        async def always_down() -> str:
            calls["n"] += 1
            raise httpx.ConnectError("down")

        with pytest.raises(httpx.ConnectError):
            asyncio.run(call_with_retry(always_down, timeout=1.0, attempts=2, backoff=0.0))
        assert calls["n"] == 2

    def test_permanent_failure_is_not_retried(self) -> None:
        calls = {"n": 0}

        async def bad_request() -> str:
            calls["n"] += 1
            raise _status_error(400)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(call_with_retry(bad_request, timeout=1.0, attempts=5, backoff=0.0))
        assert calls["n"] == 1

    def test_each_attempt_is_bounded_by_timeout(self) -> None:
        calls = {"n": 0}

        async def hangs() -> str:
            calls["n"] += 1
            await asyncio.sleep(10)
            return "never"

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(call_with_retry(hangs, timeout=0.01, attempts=2, backoff=0.0))
        assert calls["n"] == 2

    def test_thread_bound_call_without_timeout_runs_once(self) -> None:
        lock = threading.Lock()
        state = {"calls": 0, "running": 0, "peak": 0}

        def slow_sdk_call() -> str:
            with lock:
                state["calls"] += 1
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.2)
            with lock:
                state["running"] -= 1
            return "uploaded"

        result = asyncio.run(
            call_with_retry(
                lambda: asyncio.to_thread(slow_sdk_call), timeout=None, attempts=3, backoff=0.0
            )
        )

        assert result == "uploaded"
        assert state["calls"] == 1
        assert state["peak"] == 1

