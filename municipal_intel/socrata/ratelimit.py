"""Fixed-window request accounting for Socrata portals.

Socrata publishes hourly request ceilings, higher when an app token is sent.
The limiter counts calls in the current window and, once the ceiling is
reached, suspends the caller until the window rolls over instead of failing:
this layer feeds background syncs where throughput matters more than latency.

The window is measured on a monotonic clock and guarded by an
``asyncio.Lock`` so concurrent searches share one counter.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from municipal_intel.config import Settings
from municipal_intel.sources.models import SourceDescriptor

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Count-per-window limiter.

    Args:
        limit: Calls allowed per window.
        window: Window length in seconds (default one hour).
        clock: Monotonic clock, injectable for tests.
        sleep: Async sleep, injectable for tests.
    """

    def __init__(
        self,
        limit: int,
        window: float = 3600.0,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._window_start: float | None = None
        self._count = 0

    def _roll(self, now: float) -> None:
        if self._window_start is None or now - self._window_start >= self.window:
            self._window_start = now
            self._count = 0

    async def acquire(self) -> None:
        """Take one slot, waiting for the next window when none are left."""
        async with self._lock:
            self._roll(self._clock())
            if self._count >= self.limit:
                delay = self._window_start + self.window - self._clock()
                if delay > 0:
                    logger.warning(
                        "Rate limit of %d requests reached, waiting %.1fs for window reset",
                        self.limit,
                        delay,
                    )
                    await self._sleep(delay)
                self._roll(self._clock())
                if self._count >= self.limit:
                    # clock did not advance far enough; start a fresh window anyway
                    self._window_start = self._clock()
                    self._count = 0
            self._count += 1

    @property
    def remaining(self) -> int:
        if self._window_start is None or self._clock() - self._window_start >= self.window:
            return self.limit
        return max(self.limit - self._count, 0)

    def reset_time(self) -> datetime:
        """Wall-clock estimate of when the current window ends."""
        if self._window_start is None:
            return datetime.now(timezone.utc)
        left = max(self._window_start + self.window - self._clock(), 0.0)
        return datetime.now(timezone.utc) + timedelta(seconds=left)


def ceiling_for(source: SourceDescriptor, settings: Settings, has_token: bool) -> int:
    """Requests allowed per window for *source*.

    A number published in the descriptor's ``rate_limit`` wins; ``"shared"``
    or missing values fall back to the settings ceilings.
    """
    published = source.api.rate_limit if source.api else None
    if has_token:
        if published and published.with_token:
            return published.with_token
        return settings.requests_per_window_with_token
    if published and isinstance(published.without_token, int):
        return published.without_token
    return settings.requests_per_window_without_token
