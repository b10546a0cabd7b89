"""Bounded retry for network calls made by source adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def attempt(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    delay: float,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``retries + 1`` times with a fixed delay.

    Every failure is treated as retryable. After the final attempt the last
    exception is re-raised unchanged so callers see the real cause.
    """

    retries = max(0, retries)
    for index in range(retries + 1):
        try:
            return await operation()
        except Exception as exc:
            if index == retries:
                raise
            LOGGER.warning(
                "Attempt %s/%s failed (%s), retrying in %.2fs",
                index + 1,
                retries + 1,
                exc,
                delay,
            )
            await sleep(delay)
    # The loop always returns or raises.
    raise AssertionError("unreachable")
