"""Per-process run context passed explicitly into every component."""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.config import Settings
from sitecorpus.models.base import build_engine, build_session_maker
from sitecorpus.services.rate_limit import RateLimiter
from sitecorpus.services.retrieval.cache import RetrievalCache

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    settings: Settings
    session_maker: async_sessionmaker
    http: httpx.AsyncClient
    search_limiter: RateLimiter
    cache: Optional[RetrievalCache] = None
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    def request_stop(self) -> None:
        if not self.stop_event.is_set():
            logger.warning("Shutdown requested; finishing in-flight work")
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                # Not available off the main thread (e.g. inside a celery pool worker)
                logger.debug("Signal handler for %s not installed", sig)


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    limits = httpx.Limits(
        max_connections=max(10, settings.crawl_concurrency * 4),
        max_keepalive_connections=max(5, settings.crawl_concurrency * 2),
    )
    return httpx.AsyncClient(
        follow_redirects=True,
        verify=settings.fetch_verify_tls,
        timeout=httpx.Timeout(settings.fetch_timeout_seconds),
        limits=limits,
    )


@asynccontextmanager
async def open_context(settings: Settings) -> AsyncIterator[RunContext]:
    """Build the shared engine, HTTP client and limiters once for a run."""
    engine = build_engine(settings)
    http = build_http_client(settings)
    cache = RetrievalCache(settings.redis_url) if settings.search_cache_enabled else None
    ctx = RunContext(
        settings=settings,
        session_maker=build_session_maker(engine),
        http=http,
        search_limiter=RateLimiter(settings.search_min_interval_seconds),
        cache=cache,
    )
    try:
        yield ctx
    finally:
        await http.aclose()
        if cache is not None:
            await cache.close()
        await engine.dispose()
