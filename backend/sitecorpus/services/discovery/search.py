"""Web search fallback for entities whose hints lead nowhere."""

import logging
from typing import List, Optional
from urllib.parse import parse_qs, urlsplit

import httpx
from selectolax.parser import HTMLParser

from sitecorpus.services.rate_limit import RateLimiter
from sitecorpus.services.retrieval.cache import RetrievalCache

from .constants import SEARCH_BLACKLIST, SEARCH_PREFERRED_PATTERNS, SEARCH_QUERY_QUALIFIER
from .normalize import dedupe_urls, origin_of

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "web_search"


def build_query(name: str, jurisdiction: Optional[str]) -> str:
    parts = [f'"{name.strip()}"']
    if jurisdiction:
        parts.append(jurisdiction.strip())
    parts.append(SEARCH_QUERY_QUALIFIER)
    return " ".join(parts)


def _unwrap_redirect(href: str) -> str:
    href = href.strip()
    if href.startswith("//"):
        href = f"https:{href}"
    if "uddg=" in href:
        target = parse_qs(urlsplit(href).query).get("uddg")
        if target:
            return target[0]
    return href


def parse_result_links(html: str) -> List[str]:
    """Outbound result URLs from a DuckDuckGo HTML results page, in rank order."""
    tree = HTMLParser(html)
    links: List[str] = []
    for node in tree.css("a.result__a, a.result__url"):
        href = node.attributes.get("href") or ""
        if not href:
            continue
        url = _unwrap_redirect(href)
        if url.startswith(("http://", "https://")):
            links.append(url)
    return dedupe_urls(links)


def is_blacklisted(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return any(term in host for term in SEARCH_BLACKLIST)


def pick_result(links: List[str]) -> Optional[str]:
    """Origin of the best remaining result, preferring school-system-looking hosts."""
    allowed = [link for link in links if not is_blacklisted(link)]
    if not allowed:
        return None
    for link in allowed:
        lowered = link.lower()
        if any(pattern in lowered for pattern in SEARCH_PREFERRED_PATTERNS):
            return origin_of(link)
    return origin_of(allowed[0])


class WebSearch:
    """Queries the search endpoint under its own, slower rate limit."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        limiter: RateLimiter,
        endpoint: str = "https://html.duckduckgo.com/html/",
        user_agent: str = "Mozilla/5.0",
        timeout: float = 15.0,
        cache: Optional[RetrievalCache] = None,
        cache_ttl_seconds: int = 43200,
    ):
        self.client = client
        self.limiter = limiter
        self.endpoint = endpoint
        self.user_agent = user_agent
        self.timeout = timeout
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    async def search(self, query: str) -> List[str]:
        if self.cache is not None:
            cached = await self.cache.get_json(CACHE_NAMESPACE, query)
            if isinstance(cached, list):
                return [str(url) for url in cached]

        await self.limiter.wait()
        try:
            response = await self.client.get(
                self.endpoint,
                params={"q": query},
                headers={"User-Agent": self.user_agent, "Accept": "text/html"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Search request failed for %r: %s", query, exc)
            return []
        if response.status_code != 200:
            logger.warning("Search returned HTTP %s for %r", response.status_code, query)
            return []

        links = parse_result_links(response.text)
        if self.cache is not None:
            await self.cache.set_json(CACHE_NAMESPACE, query, links, self.cache_ttl_seconds)
        return links

    async def find_origin(self, name: str, jurisdiction: Optional[str]) -> Optional[str]:
        if not name or not name.strip():
            return None
        links = await self.search(build_query(name, jurisdiction))
        return pick_result(links)
