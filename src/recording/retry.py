"""Timeout and bounded retry with backoff for calls to external services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 423, 425, 429, 500, 502, 503, 504}


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying (network blips, throttling, 5xx)."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TransportError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


def _log_retry(description: str, attempts: int) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "%s failed (attempt %d/%d): %r; retrying in %.1fs",
            description,
            retry_state.attempt_number,
            attempts,
            exc,
            delay,
        )

    return log


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    timeout: float | None,
    attempts: int = 3,
    backoff: float = 1.0,
    retry_if: Callable[[BaseException], bool] = is_transient,
    description: str = "call",
) -> T:
    """Await ``fn()`` with a per-attempt timeout, retrying transient failures.

    The delay before retry ``n`` is ``backoff * 2 ** (n - 1)``. The last
    failure is re-raised unchanged once ``attempts`` are used up.

    Pass ``timeout=None`` for work running in a worker thread: cancelling the
    await does not stop the thread, so those calls must be bounded by the
    SDK's own timeout instead.
    """

    async def attempt() -> T:
        if timeout is None:
            return await fn()
        return await asyncio.wait_for(fn(), timeout=timeout)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=backoff),
        retry=retry_if_exception(retry_if),
        before_sleep=_log_retry(description, attempts),
        reraise=True,
    )
    return await retrying(attempt)
