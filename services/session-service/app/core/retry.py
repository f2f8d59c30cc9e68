# app/core/retry.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from app.errors import LockTimeout

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_until_acquired(
    attempt: Callable[[], Awaitable[Optional[T]]],
    *,
    attempts: int,
    delay: float,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Call ``attempt`` until it returns something other than None.

    - ``None`` means "contended, try again"; any exception raised by
      ``attempt`` propagates immediately and is never retried.
    - Sleeps ``delay`` between attempts, not after the last one.
    - Raises LockTimeout once ``attempts`` calls came back empty.

    There is no cancellation hook; wrap the call in ``asyncio.wait_for``
    when an outer deadline is needed.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    tries = 0
    while True:
        result = await attempt()
        if result is not None:
            return result
        tries += 1
        if tries >= attempts:
            raise LockTimeout(tries)
        await sleep(delay)
