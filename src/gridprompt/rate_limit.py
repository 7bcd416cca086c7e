"""Fixed-window admission gate shared by all scheduler workers.

At most ``limit`` calls are admitted per window. A caller arriving when the
window is full waits until the window boundary, then starts a new window.
Admissions are serialized by an asyncio lock, so waiters leave in arrival
order.

The window is fixed, not sliding: up to ``2 * limit`` calls can be admitted
across a window boundary.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0


class FixedWindowRateLimiter:
    """Fixed-window rate limiter for async callers."""

    def __init__(
        self,
        limit: int,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            limit: Admissions allowed per window (must be >= 1)
            window_seconds: Window length in seconds
            clock: Monotonic clock returning seconds
            sleep: Async sleep used while waiting for the next window
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._count = 0
        self._window_start = clock()
        self._lock = asyncio.Lock()

    async def await_slot(self, cancel: asyncio.Event | None = None) -> float:
        """Wait until a call may be issued and record the admission.

        Args:
            cancel: When set before or during the wait, return at once
                without recording an admission

        Returns:
            Time waited in seconds
        """
        async with self._lock:
            if cancel is not None and cancel.is_set():
                return 0.0
            now = self._clock()
            if now - self._window_start > self.window_seconds:
                self._count = 0
                self._window_start = now

            waited = 0.0
            if self._count >= self.limit:
                waited = max(0.0, self._window_start + self.window_seconds - now)
                logger.debug(
                    "Rate limit reached (%d/%d), waiting %.3fs",
                    self._count,
                    self.limit,
                    waited,
                )
                if waited > 0 and not await self._wait(waited, cancel):
                    logger.debug("Rate limit wait cancelled")
                    return self._clock() - now
                self._count = 0
                self._window_start = self._clock()

            self._count += 1
            return waited

    async def _wait(self, seconds: float, cancel: asyncio.Event | None) -> bool:
        """Sleep for ``seconds``. Returns False if ``cancel`` fired first."""
        if cancel is None:
            await self._sleep(seconds)
            return True
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        return not cancel.is_set()

    @property
    def remaining(self) -> int:
        """Admissions left in the current window."""
        if self._clock() - self._window_start > self.window_seconds:
            return self.limit
        return max(0, self.limit - self._count)

    @property
    def reset_at(self) -> float:
        """Clock time at which the current window ends."""
        return self._window_start + self.window_seconds

    def reset(self) -> None:
        """Start a fresh window with no admissions."""
        self._count = 0
        self._window_start = self._clock()
