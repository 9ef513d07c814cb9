"""URL normalization and typo repair.

Everything here is pure: strings in, strings out, no network.
"""

import re
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

from .constants import PLACEHOLDER_HOST_PATTERN, PLACEHOLDER_VALUES, TLD_GUESSES

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_HOST_RE = re.compile(r"^[a-z0-9](?:[a-z0-9.-]*[a-z0-9.])?$")
_PLACEHOLDER_HOST_RE = re.compile(PLACEHOLDER_HOST_PATTERN)


def dedupe_urls(urls: List[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered


def normalize_url(raw: Optional[str]) -> Optional[str]:
    """Turn a raw hint into a schemeful URL, or None when it is junk.

    A URL that already carries an http(s) scheme and a valid host is
    returned unchanged.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if len(value) < 4 or value.lower() in PLACEHOLDER_VALUES:
        return None

    has_scheme = bool(_SCHEME_RE.match(value))
    if re.search(r"\s", value):
        if not has_scheme:
            return None
        value = re.sub(r"\s+", "", value)
    if not has_scheme:
        value = f"https://{value}"

    try:
        parsed = urlsplit(value)
        parsed.port
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    if not host or not _HOST_RE.match(host) or ".." in host:
        return None
    return value


def extract_domain(url: Optional[str]) -> str:
    """Lower-cased host without a leading ``www.``."""
    if not url:
        return ""
    value = url if _SCHEME_RE.match(url) else f"https://{url}"
    try:
        host = (urlsplit(value).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def is_placeholder_host(host: str) -> bool:
    return bool(_PLACEHOLDER_HOST_RE.match(host.lower()))


def _needs_tld(host: str) -> bool:
    bare = host[4:] if host.startswith("www.") else host
    if not bare:
        return False
    if "." not in bare or bare.endswith("."):
        return True
    return len(bare.rsplit(".", 1)[-1]) == 1


def _tld_variants(scheme: str, host: str) -> List[str]:
    keep_www = host.startswith("www.")
    bare = host[4:] if keep_www else host
    bare = bare.rstrip(".")
    if "." in bare and len(bare.rsplit(".", 1)[-1]) == 1:
        # "district.o" reads as a truncated TLD
        bare = bare.rsplit(".", 1)[0]
    plain = [f"{scheme}://{bare}{tld}" for tld in TLD_GUESSES]
    www = [f"{scheme}://www.{bare}{tld}" for tld in TLD_GUESSES]
    return www + plain if keep_www else plain + www


def repair_variants(url: Optional[str]) -> List[str]:
    """Plausible corrections of a mistyped site URL, most likely first.

    Returns an empty list for placeholder jurisdiction hosts, which no
    correction can turn into an entity's own site.
    """
    normalized = normalize_url(url)
    if not normalized:
        return []
    parsed = urlsplit(normalized)
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    if is_placeholder_host(host):
        return []

    hosts: List[str] = []
    if host.startswith("www.www."):
        hosts.append("www." + host[len("www.www."):])
    elif host.startswith("ww.") and not host.startswith("www."):
        hosts.append("www." + host[len("ww."):])

    for prefix in ("mail.", "email."):
        if host.startswith(prefix):
            stripped = host[len(prefix):]
            hosts.extend([stripped, f"www.{stripped}"])
            break

    path = parsed.path or ""
    collapsed_path = re.sub(r"/{2,}", "/", path)

    fixes: List[str] = []
    for candidate in [host] + hosts:
        if is_placeholder_host(candidate):
            continue
        if candidate != host:
            fixes.append(urlunsplit((scheme, candidate, collapsed_path, parsed.query, "")))
        if _needs_tld(candidate):
            fixes.extend(_tld_variants(scheme, candidate))
    if collapsed_path != path:
        fixes.append(urlunsplit((scheme, parsed.netloc, collapsed_path, parsed.query, "")))

    return [fix for fix in dedupe_urls(fixes) if fix != normalized]


def host_variants(url: Optional[str]) -> List[str]:
    """The URL under both schemes, with and without ``www.``."""
    normalized = normalize_url(url)
    if not normalized:
        return []
    parsed = urlsplit(normalized)
    host = (parsed.hostname or "").lower()
    toggled = host[4:] if host.startswith("www.") else f"www.{host}"
    variants = [normalized]
    for scheme in ("https", "http"):
        for candidate in (host, toggled):
            variants.append(f"{scheme}://{candidate}")
    return dedupe_urls(variants)


def origin_of(url: str) -> Optional[str]:
    normalized = normalize_url(url)
    if not normalized:
        return None
    parsed = urlsplit(normalized)
    return f"{parsed.scheme.lower()}://{(parsed.hostname or '').lower()}"
