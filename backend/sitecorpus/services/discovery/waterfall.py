"""Six-strategy discovery of a working entry URL for an entity."""

import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from .candidates import email_candidates, pattern_candidates
from .constants import FORBIDDEN_MARKERS, STRATEGY_CONFIDENCE, TIMEOUT_MARKERS, TLS_MARKERS
from .liveness import LivenessProber
from .models import Discovery, DiscoveryTarget, ProbeResult
from .normalize import (
    dedupe_urls,
    extract_domain,
    host_variants,
    is_placeholder_host,
    normalize_url,
    repair_variants,
)
from .search import WebSearch

if TYPE_CHECKING:
    from sitecorpus.services.crawler.fetcher import Fetcher

logger = logging.getLogger(__name__)

STRATEGY_COUNT = 6
ALL_FAILED_MESSAGE = f"All {STRATEGY_COUNT} discovery strategies failed"


def _usable(url: Optional[str]) -> bool:
    if not url:
        return False
    host = urlsplit(url).hostname or ""
    return bool(host) and not is_placeholder_host(host)


def last_resort_strategy(error: Optional[str]) -> Optional[str]:
    """Pick the error-specific retry for the entity's last known failure."""
    text = (error or "").lower()
    if not text:
        return None
    if any(marker in text for marker in TIMEOUT_MARKERS):
        return "long_timeout"
    if any(marker in text for marker in TLS_MARKERS):
        return "http_fallback"
    if any(marker in text for marker in FORBIDDEN_MARKERS):
        return "browser_headers"
    return None


def needs_correction(discovered_url: str, hints: List[str]) -> bool:
    """True when the discovered domain matches none of the known hints."""
    domain = extract_domain(discovered_url)
    if not domain:
        return False
    known = {extract_domain(normalize_url(hint) or hint) for hint in hints if hint}
    return domain not in known


class DiscoveryWaterfall:
    """Tries the cheapest, most likely strategies first and stops at the first live URL."""

    def __init__(
        self,
        prober: LivenessProber,
        fetcher: "Fetcher",
        search: Optional[WebSearch] = None,
        long_timeout: float = 45.0,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.prober = prober
        self.fetcher = fetcher
        self.search = search
        self.long_timeout = long_timeout
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        logger.debug(message)
        if self.progress_callback:
            self.progress_callback(message)

    def _found(self, strategy: str, probe: ProbeResult, **details) -> Discovery:
        self._log(f"{strategy}: {probe.url} is live")
        return Discovery(
            url=probe.url,
            strategy=strategy,
            confidence=STRATEGY_CONFIDENCE[strategy],
            http_status=probe.status_code,
            details=details,
        )

    async def discover(self, target: DiscoveryTarget) -> Optional[Discovery]:
        hints = target.all_hints

        # 1. Repaired hints
        repaired: List[str] = []
        for hint in hints:
            repaired.extend(repair_variants(hint))
        found = await self._probe_strategy("url_fix", repaired, original=target.primary_hint)
        if found:
            return found

        # 2. Every hint with its www / scheme permutations
        cross: List[str] = []
        for hint in hints:
            cross.extend(url for url in host_variants(hint) if _usable(url))
        found = await self._probe_strategy("cross_reference", cross, original=target.primary_hint)
        if found:
            return found

        # 3. Contact email domains
        found = await self._probe_strategy("email_domain", email_candidates(target.emails),
                                           emails=list(target.emails))
        if found:
            return found

        # 4. Name / jurisdiction patterns
        patterns = pattern_candidates(target.name, target.jurisdiction)
        found = await self._probe_strategy("pattern_match", patterns,
                                           name=target.name, jurisdiction=target.jurisdiction)
        if found:
            return found

        # 5. Web search
        if self.search is not None:
            origin = await self.search.find_origin(target.name, target.jurisdiction)
            if origin:
                candidates = [origin]
                parsed = urlsplit(origin)
                if parsed.hostname and not parsed.hostname.startswith("www."):
                    candidates.append(f"{parsed.scheme}://www.{parsed.hostname}")
                found = await self._probe_strategy("web_search", candidates, search_result=origin)
                if found:
                    return found

        # 6. Error-specific last resort
        return await self._last_resort(target)

    async def _probe_strategy(self, strategy: str, candidates: List[str], **details) -> Optional[Discovery]:
        candidates = dedupe_urls(candidates)
        if not candidates:
            return None
        self._log(f"{strategy}: probing {len(candidates)} candidate(s)")
        probe = await self.prober.first_live(candidates)
        if probe is None:
            return None
        return self._found(strategy, probe, candidates_tried=len(candidates), **details)

    def _last_resort_request(self, target: DiscoveryTarget) -> Optional[Tuple[str, str]]:
        strategy = last_resort_strategy(target.last_error)
        if strategy is None:
            return None
        url = normalize_url(target.last_failed_url or target.primary_hint)
        if not url:
            return None
        if strategy == "http_fallback":
            parsed = urlsplit(url)
            url = urlunsplit(("http", parsed.netloc, parsed.path, parsed.query, ""))
        return strategy, url

    async def _last_resort(self, target: DiscoveryTarget) -> Optional[Discovery]:
        request = self._last_resort_request(target)
        if request is None:
            return None
        strategy, url = request
        self._log(f"{strategy}: retrying {url}")
        if strategy == "long_timeout":
            result = await self.fetcher.fetch(url, timeout=self.long_timeout)
        elif strategy == "browser_headers":
            result = await self.fetcher.fetch(url, browser_profile=True)
        else:
            result = await self.fetcher.fetch(url)
        if not result.success:
            return None
        return Discovery(
            url=url,
            strategy=strategy,
            confidence=STRATEGY_CONFIDENCE[strategy],
            http_status=result.status_code,
            details={"previous_error": target.last_error},
            fetched=result,
        )
