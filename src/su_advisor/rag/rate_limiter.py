"""
Rate Limiter Module - Process-wide admission gate for generation calls.
======================================================================

Admits at most one generation call per fixed interval, in arrival order.
Waiting callers sleep on the event loop; nothing busy-waits.
"""

import asyncio

from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)


class IntervalRateLimiter:
    """
    FIFO gate spacing admissions at least ``interval`` seconds apart.

    ``asyncio.Lock`` wakes waiters in the order they queued, which gives
    FIFO admission. A caller cancelled while waiting gives up its place
    without consuming a slot.

    Example:
        >>> limiter = IntervalRateLimiter(interval=1.0)
        >>> async with limiter:
        ...     stream = provider.stream_chat(messages)
    """

    def __init__(self, interval: float = 1.0):
        self.interval = max(0.0, interval)
        self._lock = asyncio.Lock()
        self._next_slot = 0.0
        self.admitted = 0

    async def acquire(self) -> None:
        """Wait until this caller's admission slot comes up."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            delay = self._next_slot - loop.time()
            if delay > 0:
                logger.debug(f"Rate limit: waiting {delay:.2f}s")
                await asyncio.sleep(delay)
            self._next_slot = loop.time() + self.interval
            self.admitted += 1

    async def __aenter__(self) -> "IntervalRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None
