"""Link prioritization for the one-hop expansion from an entry page."""

from typing import List
from urllib.parse import urlsplit

from .constants import SHALLOW_PATH_MAX_SEGMENTS, URL_PRIORITY_KEYWORDS


def path_segments(url: str) -> int:
    path = (urlsplit(url).path or "").strip("/")
    return len(path.split("/")) if path else 0


def score_link(url: str) -> int:
    lowered = url.lower()
    score = sum(1 for keyword in URL_PRIORITY_KEYWORDS if keyword in lowered)
    if path_segments(url) <= SHALLOW_PATH_MAX_SEGMENTS:
        score += 1
    return score


def select_links(urls: List[str], limit: int, min_score: int = 1) -> List[str]:
    """Top ``limit`` links by score; ties keep page order."""
    scored = [(score_link(url), index, url) for index, url in enumerate(urls)]
    kept = [item for item in scored if item[0] >= min_score]
    kept.sort(key=lambda item: (-item[0], item[1]))
    return [url for _, _, url in kept[: max(0, limit)]]
