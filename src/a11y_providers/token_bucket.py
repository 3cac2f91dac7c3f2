# src/a11y_providers/token_bucket.py
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

REFILL_WINDOW_MS = 60_000


def _now_ms() -> float:
    return time.monotonic() * 1000


async def _sleep_ms(ms: float) -> None:
    await asyncio.sleep(ms / 1000)


class TokenBucket:
    """
    Requests-per-minute limiter shared by every caller of one provider.

    The bucket starts full (capacity = rpm) and is topped up in whole
    60 second windows. Callers that find it empty sleep until the next
    window boundary and then try again, so concurrent callers serialize on
    the wait without needing a lock.
    """

    def __init__(
            self,
            rpm: int,
            now: Optional[Callable[[], float]] = None,
            sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.capacity = max(0, int(rpm))
        self.refill_ms = REFILL_WINDOW_MS
        self.tokens = self.capacity
        self._now = now or _now_ms
        self._sleep = sleep or _sleep_ms
        self.last_refill_at = self._now()

    async def take(self, count: int = 1) -> None:
        """Consumes `count` tokens, waiting for refills when the bucket is empty."""
        if self.capacity == 0 or count <= 0:
            return

        while True:
            self._refill_if_needed()

            if self.tokens >= count:
                self.tokens -= count
                return

            wait_ms = max(0.0, self.last_refill_at + self.refill_ms - self._now())
            logger.debug("Rate limit reached; waiting %.0fms for the next refill.", wait_ms)
            await self._sleep(wait_ms)

    def _refill_if_needed(self) -> None:
        elapsed = self._now() - self.last_refill_at
        if elapsed < self.refill_ms:
            return

        windows = int(elapsed // self.refill_ms)
        self.tokens = min(self.capacity, self.tokens + windows * self.capacity)
        self.last_refill_at += windows * self.refill_ms
