"""HTTP fetcher with size cap, retries and browser-like request profiles."""

import logging
import random
import time
from typing import Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from sitecorpus.errors import FetchError
from sitecorpus.services.retry import RetryPolicy

from .constants import (
    BINARY_ACCEPT,
    BROWSER_HEADERS,
    FULL_BROWSER_HEADERS,
    REFERER_TEMPLATE,
)
from .models import FetchResult

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def is_transient_fetch_error(exc: Exception) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


def fetch_retry_policy(max_attempts: int = 2, backoff_seconds: float = 1.0) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=backoff_seconds,
        backoff="linear",
        is_retryable=is_transient_fetch_error,
    )


class Fetcher:
    """Fetches one URL at a time through the shared ``httpx.AsyncClient``.

    The client carries redirect following and the TLS-verification setting;
    the fetcher adds headers, the byte cap and the retry policy.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agents: Optional[List[str]] = None,
        timeout: float = 15.0,
        max_bytes: int = 10 * 1024 * 1024,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.user_agents = list(user_agents or [DEFAULT_USER_AGENT])
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.retry_policy = retry_policy or fetch_retry_policy()

    def build_headers(self, url: str, binary: bool = False, browser_profile: bool = False) -> Dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        if browser_profile:
            headers["User-Agent"] = self.user_agents[0]
            headers.update(FULL_BROWSER_HEADERS)
            host = urlsplit(url).hostname or ""
            headers["Referer"] = REFERER_TEMPLATE.format(host=host)
        else:
            headers["User-Agent"] = random.choice(self.user_agents)
        if binary:
            headers["Accept"] = BINARY_ACCEPT
        return headers

    async def fetch(
        self,
        url: str,
        binary: bool = False,
        timeout: Optional[float] = None,
        browser_profile: bool = False,
    ) -> FetchResult:
        headers = self.build_headers(url, binary=binary, browser_profile=browser_profile)
        request_timeout = timeout or self.timeout
        started = time.monotonic()

        try:
            result = await self.retry_policy.run(lambda: self._fetch_once(url, headers, request_timeout))
        except FetchError as exc:
            result = FetchResult(url=url, success=False, error=str(exc), timed_out=exc.timed_out)
        result.elapsed_ms = int((time.monotonic() - started) * 1000)
        return result

    async def _fetch_once(self, url: str, headers: Dict[str, str], timeout: float) -> FetchResult:
        try:
            async with self.client.stream("GET", url, headers=headers, timeout=timeout) as response:
                content_type = response.headers.get("content-type", "")
                status = response.status_code
                if not 200 <= status < 300:
                    return FetchResult(
                        url=url,
                        success=False,
                        status_code=status,
                        content_type=content_type,
                        final_url=str(response.url),
                        error=f"HTTP {status}",
                    )

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    return self._too_large(url, status, content_type)

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        return self._too_large(url, status, content_type)

                return FetchResult(
                    url=url,
                    success=True,
                    status_code=status,
                    content_type=content_type,
                    content=bytes(body),
                    encoding=response.charset_encoding or "utf-8",
                    final_url=str(response.url),
                )
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timeout: {type(exc).__name__}", retryable=True, timed_out=True) from exc
        except (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError) as exc:
            message = str(exc) or type(exc).__name__
            # Certificate failures are not transient
            retryable = not any(marker in message.lower() for marker in ("ssl", "cert", "tls"))
            raise FetchError(message, retryable=retryable) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(str(exc) or type(exc).__name__) from exc

    def _too_large(self, url: str, status: int, content_type: str) -> FetchResult:
        return FetchResult(
            url=url,
            success=False,
            status_code=status,
            content_type=content_type,
            error=f"Content exceeds {self.max_bytes} bytes",
        )
