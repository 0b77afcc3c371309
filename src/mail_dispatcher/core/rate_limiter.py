"""Fixed-window rate limiting for dispatch admission.

The limiter counts admitted sends in a window that starts at the first check
after the previous window elapsed. It is a fixed window, not a sliding log:
a burst straddling a window boundary can admit up to twice the limit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from mail_dispatcher.types import RateWindow
from mail_dispatcher.utils.logging import get_logger, log_with_context

__all__ = ["Clock", "FixedWindowRateLimiter"]

type Clock = Callable[[], float]


class FixedWindowRateLimiter:
    """Admit at most ``limit`` dispatches per ``window_seconds``.

    Args:
        limit: Maximum admissions per window. Must be >= 1.
        window_seconds: Window length in seconds. Must be > 0.
        clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(
        self,
        *,
        limit: int = 5,
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if limit < 1:
            msg = "limit must be >= 1"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be greater than zero"
            raise ValueError(msg)

        self._limit: int = limit
        self._window_seconds: float = window_seconds
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._count: int = 0
        self._window_start: float = clock()
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    async def admit(self) -> bool:
        """Check the window and count one admission if there is room.

        A denied call leaves the counter untouched. The check and the
        increment run with no await between them, which is what makes them
        atomic on the event loop. The lock keeps them serialised should an
        await ever be added inside the critical section.

        Returns:
            True if the dispatch may proceed, False if the window is full
        """
        async with self._lock:
            now = self._clock()

            if now - self._window_start > self._window_seconds:
                self._count = 0
                self._window_start = now

            if self._count >= self._limit:
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Rate limit exceeded",
                    extra={
                        "rate_limit": self._limit,
                        "window_seconds": self._window_seconds,
                        "reset_in_seconds": round(self._seconds_until_reset(now), 3),
                    },
                )
                return False

            self._count += 1
            self._logger.debug("Rate limit check passed (%d/%d)", self._count, self._limit)
            return True

    def snapshot(self) -> RateWindow:
        """Return the current window state."""
        return RateWindow(count=self._count, window_start=self._window_start)

    def seconds_until_reset(self) -> float:
        """Return seconds until the current window can be reset."""
        return self._seconds_until_reset(self._clock())

    def reset(self) -> None:
        """Start a fresh, empty window now."""
        self._count = 0
        self._window_start = self._clock()

    def _seconds_until_reset(self, now: float) -> float:
        return max(0.0, self._window_seconds - (now - self._window_start))
