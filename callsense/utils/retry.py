"""Retry helpers using tenacity."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from ..logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Return ``attempt_number -> base_delay * attempt_number``."""

    def _backoff(attempt_number: int) -> float:
        return base_delay * attempt_number

    return _backoff


async def attempt(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int,
    backoff: Callable[[int], float],
    *,
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn`` up to ``max_attempts`` times.

    ``backoff(n)`` is the delay after the n-th failed attempt; no delay follows
    the final attempt. Exceptions rejected by ``retry_if`` propagate at once,
    and the last exception is re-raised when attempts are exhausted.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _wait(state: RetryCallState) -> float:
        return backoff(state.attempt_number)

    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        LOGGER.warning(
            "Attempt %d/%d failed (%s); retrying in %.2fs",
            state.attempt_number,
            max_attempts,
            exc,
            state.next_action.sleep if state.next_action else 0.0,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=_wait,
        retry=retry_if_exception(retry_if or (lambda _exc: True)),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(fn)


__all__ = ["attempt", "linear_backoff"]
