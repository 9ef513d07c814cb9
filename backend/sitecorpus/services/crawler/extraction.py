"""Content extraction: HTML and PDF bytes to plain text, title and links.

Callers only see ``extract(content, declared_type, url)``; the parser behind
each format can change without touching the orchestrator.
"""

import codecs
import io
import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import unquote, urljoin, urlsplit, urlunsplit

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from selectolax.parser import HTMLParser, Node

from sitecorpus.errors import ExtractionError

from .constants import (
    BINARY_EXTENSIONS,
    NON_CONTENT_TAGS,
    PDF_MAGIC,
    PDF_MAGIC_WINDOW,
    SKIP_LINK_PREFIXES,
)
from .models import ExtractedContent, LinkSet

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _bare_host(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_same_site(url: str, base_url: str) -> bool:
    host = _bare_host(url)
    base = _bare_host(base_url)
    if not host or not base:
        return False
    return host == base or host.endswith(f".{base}")


def is_binary_link(url: str) -> bool:
    path = (urlsplit(url).path or "").lower()
    return path.endswith(BINARY_EXTENSIONS)


def resolve_link(href: Optional[str], base_url: str) -> Optional[str]:
    """Absolute http(s) URL for ``href`` without its fragment, or None."""
    if not href:
        return None
    href = href.strip()
    if not href or href.lower().startswith(SKIP_LINK_PREFIXES):
        return None
    try:
        parsed = urlsplit(urljoin(base_url, href))
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, parsed.query, ""))


def _same_page(url: str, base_url: str) -> bool:
    a, b = urlsplit(url), urlsplit(base_url)
    return (
        _bare_host(url) == _bare_host(base_url)
        and (a.path or "/").rstrip("/") == (b.path or "/").rstrip("/")
        and a.query == b.query
    )


def _node_attr(node: Node, key: str) -> str:
    raw = node.attributes.get(key)
    return str(raw).strip() if raw else ""


def extract_links(tree: HTMLParser, base_url: str, max_links: int = 200) -> LinkSet:
    links = LinkSet()
    seen = set()

    for node in tree.css("a[href]"):
        if len(links.internal) + len(links.binary) >= max_links:
            break
        url = resolve_link(_node_attr(node, "href"), base_url)
        if not url or url in seen:
            continue
        seen.add(url)
        if is_binary_link(url):
            # Documents are often hosted on a CDN, so any host is accepted
            links.binary.append(url)
        elif is_same_site(url, base_url) and not _same_page(url, base_url):
            links.internal.append(url)

    for selector, attr in (("iframe[src]", "src"), ("embed[src]", "src"), ("object[data]", "data")):
        for node in tree.css(selector):
            url = resolve_link(_node_attr(node, attr), base_url)
            if url and url not in seen and is_binary_link(url):
                seen.add(url)
                links.embedded_binary.append(url)

    return links


def resolve_codec(encoding: Optional[str]) -> str:
    """Codec for a declared charset; unknown or missing charsets fall back to utf-8."""
    try:
        return codecs.lookup((encoding or "utf-8").strip()).name
    except LookupError:
        logger.debug("Unknown charset %r, decoding as utf-8", encoding)
        return "utf-8"


def extract_html(content: bytes, url: str, encoding: str = "utf-8", max_links: int = 200) -> ExtractedContent:
    html = content.decode(resolve_codec(encoding), errors="replace")
    tree = HTMLParser(html)

    title = None
    title_node = tree.css_first("title")
    if title_node is not None:
        title = collapse_whitespace(title_node.text()) or None

    links = extract_links(tree, url, max_links=max_links)

    for tag in NON_CONTENT_TAGS:
        for node in tree.css(tag):
            node.decompose()
    root = tree.body or tree.root
    text = collapse_whitespace(root.text(separator=" ")) if root is not None else ""

    return ExtractedContent(text=text, title=title, links=links, method="html_scrape")


def pdf_title_from_url(url: str) -> str:
    name = unquote((urlsplit(url).path or "").rstrip("/").rsplit("/", 1)[-1])
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name or "Untitled document"


def _read_pdf_text(content: bytes) -> Tuple[str, Optional[str]]:
    reader = PdfReader(io.BytesIO(content))
    pages: List[str] = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text)
    title = None
    if reader.metadata is not None and reader.metadata.title:
        title = str(reader.metadata.title).strip() or None
    return "\n\n".join(pages), title


def extract_pdf(content: bytes, url: str) -> ExtractedContent:
    if PDF_MAGIC not in content[:PDF_MAGIC_WINDOW]:
        raise ExtractionError("Not a PDF (missing %PDF header)")
    try:
        text, title = _read_pdf_text(content)
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise ExtractionError(f"PDF parse failed: {exc}") from exc
    text = text.strip()
    if not text:
        raise ExtractionError("PDF contains no extractable text")
    return ExtractedContent(
        text=text,
        title=title or pdf_title_from_url(url),
        method="pdf_parse",
    )


def extract(
    content: bytes,
    declared_type: str,
    url: str,
    encoding: str = "utf-8",
    max_links: int = 200,
) -> ExtractedContent:
    """Extract text, title and links from fetched bytes.

    ``declared_type`` is ``"html"`` or ``"pdf"``. Malformed input never
    raises; it comes back with ``success=False`` and a descriptive error.
    """
    try:
        if declared_type == "pdf":
            return extract_pdf(content, url)
        return extract_html(content, url, encoding=encoding, max_links=max_links)
    except ExtractionError as exc:
        logger.debug("Extraction failed for %s: %s", url, exc)
        method = "pdf_parse" if declared_type == "pdf" else "html_scrape"
        return ExtractedContent(method=method, success=False, error=str(exc))
