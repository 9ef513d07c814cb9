"""Discovery-keyword detection and document categorization."""

import re
from typing import Iterable, List

from sitecorpus.models.document import DocumentCategory

from .constants import (
    DISCOVERY_KEYWORDS,
    PORTRAIT_KEYWORD_MARKERS,
    PORTRAIT_URL_MARKERS,
    STRATEGIC_KEYWORD_MARKERS,
    STRATEGIC_URL_MARKERS,
)

_KEYWORD_RES = [re.compile(pattern, re.IGNORECASE) for pattern in DISCOVERY_KEYWORDS]


def detect_keywords(text: str) -> List[str]:
    """Unique lower-cased keyword matches, in first-seen order."""
    found: List[str] = []
    if not text:
        return found
    for pattern in _KEYWORD_RES:
        for match in pattern.finditer(text):
            value = re.sub(r"\s+", " ", match.group(0).lower())
            if value not in found:
                found.append(value)
    return found


def categorize(url: str, keywords: Iterable[str]) -> DocumentCategory:
    keywords = [keyword.lower() for keyword in keywords]
    for keyword in keywords:
        if any(marker in keyword for marker in PORTRAIT_KEYWORD_MARKERS):
            return DocumentCategory.portrait_of_graduate
    for keyword in keywords:
        if any(marker in keyword for marker in STRATEGIC_KEYWORD_MARKERS):
            return DocumentCategory.strategic_plan

    lowered = (url or "").lower()
    if any(marker in lowered for marker in PORTRAIT_URL_MARKERS):
        return DocumentCategory.portrait_of_graduate
    if any(marker in lowered for marker in STRATEGIC_URL_MARKERS):
        return DocumentCategory.strategic_plan
    return DocumentCategory.other
