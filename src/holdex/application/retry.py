from __future__ import annotations
import asyncio, logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from ..domain.errors import RPCError, RetriesExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (RPCError, httpx.HTTPError)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded retry with linear backoff: wait `base_delay_s * n` after failed attempt n."""
    max_attempts: int = 3
    base_delay_s: float = 1.0
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS
    sleep: Sleep = asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_s * attempt

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str) -> T:
        """Await `fn()` until it succeeds; raise RetriesExhausted after the last failed attempt."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    raise RetriesExhausted(label, attempt, e) from e
                logger.warning("retry %d/%d for %s (%s: %s)", attempt, self.max_attempts, label, type(e).__name__, e)
                await self.sleep(self.delay_for(attempt))
        raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
