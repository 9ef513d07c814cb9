import asyncio
import time
from typing import Any, Awaitable, Callable


class RateLimiter:
    """Enforces a minimum interval between successive ``wait()`` returns."""

    def __init__(
        self,
        min_interval: float,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None and self.min_interval > 0:
                remaining = self.min_interval - (self._clock() - self._last)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last = self._clock()
