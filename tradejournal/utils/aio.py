from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from tradejournal.utils.exceptions import DeadlineExceededError

T = TypeVar("T")


async def with_deadline(aw: Awaitable[T], timeout: Optional[float], operation: str) -> T:
    """Await ``aw`` under a deadline.

    Expiry cancels the inner task (which interrupts any running SQLite
    statement) and raises DeadlineExceededError. Cancellation of the caller
    propagates unchanged as asyncio.CancelledError.
    """
    if timeout is None or timeout <= 0:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout)
    except asyncio.TimeoutError as e:
        raise DeadlineExceededError(operation, timeout) from e
