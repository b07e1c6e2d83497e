# src/services/rate_limiter.py

"""Fixed-interval pacing for calls to the external price API."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger("price_sync.rate_limiter")


class FixedIntervalLimiter:
    """Keep at least *interval* seconds between units of work.

    Call ``wait()`` before a unit and ``mark()`` once it is done.  The
    first ``wait()`` returns immediately; later ones sleep for whatever
    remains of the interval since the last ``mark()`` (or ``wait()``).
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    def mark(self) -> None:
        """Record that a unit of work just finished."""
        self._last = self._clock()

    async def wait(self) -> float:
        """Pause as needed and return the seconds slept."""
        slept = 0.0
        if self._last is not None:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                logger.debug("Rate limiter sleeping %.3fs", remaining)
                await self._sleep(remaining)
                slept = remaining
        self._last = self._clock()
        return slept
