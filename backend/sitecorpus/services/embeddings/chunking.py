"""Paragraph-aware chunking with overlap and a metadata header."""

import re
from typing import List, Optional

CATEGORY_LABELS = {
    "strategic_plan": "Strategic Plan",
    "portrait_of_graduate": "Portrait of a Graduate",
}
DEFAULT_CATEGORY_LABEL = "General"

# Largest natural boundary first
SEPARATORS = [
    "\n\n",
    "\n",
    re.compile(r"(?<=[.!?])\s+"),
    re.compile(r"\s+"),
]


def normalize_text(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text or "")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def metadata_header(entity_name: Optional[str], jurisdiction: Optional[str], category: Optional[str]) -> str:
    label = CATEGORY_LABELS.get(category or "", DEFAULT_CATEGORY_LABEL)
    return f"Entity: {entity_name or 'Unknown'} | Jurisdiction: {jurisdiction or 'Unknown'} | Type: {label}"


def _split(text: str, separator) -> List[str]:
    if isinstance(separator, str):
        return text.split(separator)
    return separator.split(text)


def _joiner(separator) -> str:
    return separator if isinstance(separator, str) else " "


def _hard_split(text: str, max_chars: int) -> List[str]:
    return [text[i:i + max_chars] for i in range(0, len(text), max_chars)]


def split_text(text: str, max_chars: int, separators=None) -> List[str]:
    """Split ``text`` into segments of at most ``max_chars``, at the largest boundary available."""
    if len(text) <= max_chars:
        return [text]
    separators = SEPARATORS if separators is None else separators

    for position, separator in enumerate(separators):
        parts = [part for part in _split(text, separator) if part]
        if len(parts) <= 1:
            continue

        joiner = _joiner(separator)
        merged: List[str] = []
        current = ""
        for part in parts:
            candidate = f"{current}{joiner}{part}" if current else part
            if len(candidate) <= max_chars:
                current = candidate
            else:
                if current:
                    merged.append(current)
                current = part
        if current:
            merged.append(current)
        if len(merged) <= 1:
            continue

        segments: List[str] = []
        for segment in merged:
            if len(segment) <= max_chars:
                segments.append(segment)
            else:
                segments.extend(split_text(segment, max_chars, separators[position + 1:]))
        return segments

    return _hard_split(text, max_chars)


def chunk_document(
    text: str,
    entity_name: Optional[str] = None,
    jurisdiction: Optional[str] = None,
    category: Optional[str] = None,
    max_chars: int = 6000,
    overlap: int = 800,
    min_chars: int = 100,
    max_document_chars: int = 50000,
) -> List[str]:
    """Chunks ready for embedding, each carrying the metadata header.

    A document that fits in ``max_chars`` comes back as a single chunk.
    Longer ones are split and every chunk after the first starts with the
    last ``overlap`` characters of the previous segment.
    """
    body = normalize_text(text)[:max_document_chars]
    if not body:
        return []
    full = f"{metadata_header(entity_name, jurisdiction, category)}\n\n{body}"

    if len(full) <= max_chars:
        return [full] if len(full) >= min_chars else []

    segments = split_text(full, max_chars)
    chunks: List[str] = []
    for index, segment in enumerate(segments):
        if index == 0 or overlap <= 0:
            chunks.append(segment)
        else:
            chunks.append(f"{segments[index - 1][-overlap:]} {segment}")
    return [chunk for chunk in chunks if len(chunk) >= min_chars]
