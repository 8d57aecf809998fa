"""Exponential-backoff retry for async operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 2.0,
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Await ``operation()`` up to *attempts* times.

    The delay before retry ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``,
    so the default policy waits 2s then 4s.  No jitter is applied.

    *should_retry* may veto a retry for a given exception; the exception is
    then re-raised immediately.  After the final attempt the last exception
    propagates unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            last_attempt = attempt == attempts - 1
            if last_attempt or (should_retry is not None and not should_retry(exc)):
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s attempt %d/%d failed: %s -- retrying in %.1fs",
                label, attempt + 1, attempts, exc, delay,
            )
            await sleep(delay)

    raise AssertionError("unreachable")
