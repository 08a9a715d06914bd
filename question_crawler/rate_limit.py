"""Politeness delays applied around upstream requests."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Sleep for a fixed delay plus optional random jitter.

    Every caller waits independently, so concurrent workers each pay the
    delay before their own request rather than queueing behind each other.
    """

    def __init__(
        self,
        delay: float,
        jitter: float = 0.0,
        *,
        sleep: SleepFunc | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.delay = max(0.0, delay)
        self.jitter = max(0.0, jitter)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def next_delay(self) -> float:
        if self.jitter:
            return self.delay + self._rng.uniform(0.0, self.jitter)
        return self.delay

    async def wait(self) -> float:
        delay = self.next_delay()
        if delay > 0:
            LOGGER.debug("Waiting %.2fs before next request", delay)
            await self._sleep(delay)
        return delay

    @classmethod
    def disabled(cls) -> "RateLimiter":
        return cls(0.0)
