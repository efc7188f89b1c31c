from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """Await ``operation`` up to ``attempts`` times, backing off in between.

    The last failure is re-raised once the attempts are used up.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on:
            if attempt >= attempts:
                raise
            await schedule_retry(attempt)
    raise ValueError("attempts must be at least 1")
