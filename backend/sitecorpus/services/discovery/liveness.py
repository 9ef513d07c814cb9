"""Liveness probing: DNS first, then a HEAD request."""

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional
from urllib.parse import urljoin, urlsplit

import dns.asyncresolver
import dns.exception
import httpx

from .models import ProbeResult

logger = logging.getLogger(__name__)


class LivenessProber:
    """Cheap existence checks used to filter candidate URLs before crawling.

    DNS answers are cached per hostname for the life of the prober, so one
    prober should be shared across every entity in a run.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        dns_timeout: float = 4.0,
        probe_timeout: float = 10.0,
        resolve_host: Optional[Callable[[str], Awaitable[bool]]] = None,
    ):
        self.client = client
        self.dns_timeout = dns_timeout
        self.probe_timeout = probe_timeout
        self._resolve_host = resolve_host or self._dns_resolves
        self._dns_cache: Dict[str, bool] = {}
        self._resolver = None

    async def _dns_resolves(self, host: str) -> bool:
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
        try:
            answer = await self._resolver.resolve(host, "A", lifetime=self.dns_timeout)
        except dns.exception.DNSException:
            return False
        return len(answer) > 0

    async def host_resolves(self, host: str) -> bool:
        host = host.lower()
        if host not in self._dns_cache:
            self._dns_cache[host] = await self._resolve_host(host)
        return self._dns_cache[host]

    async def _head(self, url: str) -> httpx.Response:
        return await self.client.head(url, follow_redirects=False, timeout=self.probe_timeout)

    async def probe(self, url: str) -> ProbeResult:
        host = urlsplit(url).hostname
        if not host:
            return ProbeResult(url=url, live=False, error="Invalid URL")
        if not await self.host_resolves(host):
            return ProbeResult(url=url, live=False, error="DNS resolution failed")

        try:
            response = await self._head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return ProbeResult(url=url, live=False, error=f"{type(exc).__name__}: {exc}")

        status = response.status_code
        if status >= 400:
            return ProbeResult(url=url, live=False, status_code=status, error=f"HTTP {status}")
        location = response.headers.get("location")
        if status < 300 or not location:
            return ProbeResult(url=url, live=True, status_code=status)

        # One redirect hop only
        target = urljoin(url, location)
        try:
            redirected = await self._head(target)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return ProbeResult(url=url, live=False, status_code=response.status_code,
                               error=f"{type(exc).__name__}: {exc}")
        if redirected.status_code < 400:
            return ProbeResult(url=target, live=True, status_code=redirected.status_code,
                               redirected_from=url)
        return ProbeResult(url=url, live=False, status_code=redirected.status_code,
                           error=f"HTTP {redirected.status_code}")

    async def first_live(self, urls: Iterable[str]) -> Optional[ProbeResult]:
        """Probe in order and stop at the first live URL."""
        for url in urls:
            result = await self.probe(url)
            if result.live:
                logger.debug("Live: %s (%s)", result.url, result.status_code)
                return result
        return None
