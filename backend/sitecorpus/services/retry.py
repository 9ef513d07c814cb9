"""Shared retry policy for network call sites.

Each call site builds its own ``RetryPolicy`` (fetches retry briefly with a
linear schedule, embedding calls retry longer with an exponential one) instead
of carrying its own backoff loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def classify_retryable_error(exc: Exception) -> bool:
    retryable = getattr(exc, "retryable", None)
    if retryable is not None:
        return bool(retryable)
    text = str(exc).lower()
    if "rate limit" in text or "429" in text:
        return True
    if "timeout" in text or "timed out" in text:
        return True
    if "connection reset" in text or "connection aborted" in text:
        return True
    if "502" in text or "503" in text or "504" in text:
        return True
    return False


@dataclass
class RetryPolicy:
    max_attempts: int = 2
    base_delay: float = 1.0
    backoff: str = "linear"  # linear | exponential
    is_retryable: Callable[[Exception], bool] = classify_retryable_error
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, retry_count: int) -> float:
        """Delay before retry number ``retry_count`` (0-based)."""
        if self.base_delay <= 0:
            return 0.0
        if self.backoff == "exponential":
            return self.base_delay * (2 ** retry_count)
        return self.base_delay * (retry_count + 1)

    async def run(
        self,
        fn: Callable[[], Awaitable[Any]],
        on_retry: Optional[Callable[[int, Exception], None]] = None,
    ) -> Any:
        """Await ``fn()`` until it succeeds, fails terminally or attempts run out."""
        max_attempts = max(1, int(self.max_attempts))
        retry_count = 0
        while True:
            try:
                return await fn()
            except Exception as exc:
                if not self.is_retryable(exc) or retry_count >= max_attempts - 1:
                    raise
                delay = self.delay_for(retry_count)
                logger.debug("Retrying after %s (attempt %d, delay %.2fs)", exc, retry_count + 1, delay)
                if on_retry:
                    on_retry(retry_count, exc)
                if delay > 0:
                    await self.sleep(delay)
                retry_count += 1
