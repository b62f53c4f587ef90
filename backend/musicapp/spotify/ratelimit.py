from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .errors import RateLimitedError

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger("spotify.batching")


@dataclass(slots=True, frozen=True)
class RateLimitPolicy:
    """How long to back off when the API answers 429.

    ``Retry-After`` wins when the API sends it. Otherwise the wait starts at
    ``default_retry_after`` and doubles per attempt, never exceeding
    ``max_backoff``. After ``max_retries`` rate-limited attempts the last
    :class:`RateLimitedError` is re-raised.
    """

    max_retries: int = 5
    default_retry_after: float = 5.0
    max_backoff: float = 60.0

    def delay_for(self, attempt: int, retry_after: float | None) -> float:
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.max_backoff)
        return min(self.default_retry_after * (2 ** (attempt - 1)), self.max_backoff)


async def call_with_backoff(
    call: Callable[[], Awaitable[T]],
    policy: RateLimitPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    label: str = "request",
) -> T:
    attempt = 1
    while True:
        try:
            return await call()
        except RateLimitedError as exc:
            if attempt >= policy.max_retries:
                logger.warning("Giving up on %s after %s rate-limited attempts", label, attempt)
                raise
            delay = policy.delay_for(attempt, exc.retry_after)
            logger.info("Rate limited on %s (attempt %s/%s); sleeping %.1fs", label, attempt, policy.max_retries, delay)
            await sleep(delay)
            attempt += 1
