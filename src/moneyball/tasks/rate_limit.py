"""
Rate limiting for outbound requests to external sites.

A RateLimiter keeps a single "last request" timestamp shared by both delay
classes: asking for a general slot right after a heavy one only waits out the
general delay measured from that shared timestamp.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional, Protocol

from moneyball.tasks.models import RateClass, utc_now

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Time source used by the scheduler and rate limiter."""

    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall clock (naive UTC), time.monotonic and asyncio.sleep."""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class RateLimiter:
    """
    Enforces a minimum delay between outbound requests.

    Args:
        general_delay: Seconds required between ordinary requests
        heavy_delay: Seconds required before a resource-intensive request
        clock: Time source (defaults to SystemClock)

    Usage:
        limiter = RateLimiter(general_delay=2.0, heavy_delay=30.0)
        await limiter.await_slot(RateClass.GENERAL)
        response = await client.get(url)
    """

    def __init__(
        self,
        general_delay: float = 2.0,
        heavy_delay: float = 30.0,
        clock: Optional[Clock] = None,
    ):
        if general_delay < 0 or heavy_delay < 0:
            raise ValueError("Rate limit delays cannot be negative")
        self._delays = {
            RateClass.GENERAL: general_delay,
            RateClass.HEAVY: heavy_delay,
        }
        self.clock = clock or SystemClock()
        # None until the first request, so the first slot never waits
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "RateLimiter":
        return cls(
            general_delay=settings.rate_limit_general_seconds,
            heavy_delay=settings.rate_limit_heavy_seconds,
            clock=clock,
        )

    @property
    def last_request_time(self) -> Optional[float]:
        return self._last_request_time

    def delay_for(self, rate_class: RateClass) -> float:
        return self._delays[RateClass(rate_class)]

    def time_until_slot(self, rate_class: RateClass) -> float:
        """Seconds a caller would have to wait for a slot right now."""
        if self._last_request_time is None:
            return 0.0
        elapsed = self.clock.monotonic() - self._last_request_time
        return max(0.0, self.delay_for(rate_class) - elapsed)

    async def await_slot(self, rate_class: RateClass = RateClass.GENERAL) -> float:
        """
        Wait until a request of ``rate_class`` may be sent, then claim the slot.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            wait = self.time_until_slot(rate_class)
            if wait > 0:
                logger.debug("Rate limiting: waiting %.2fs before next %s request", wait, RateClass(rate_class).value)
                await self.clock.sleep(wait)

            now = self.clock.monotonic()
            if self._last_request_time is None or now > self._last_request_time:
                self._last_request_time = now
            return wait
