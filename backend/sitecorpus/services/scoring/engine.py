"""Keyword taxonomy scoring.

Pure functions over already-loaded documents; ``score_entity`` has no I/O
and takes ``now`` explicitly, so identical inputs give identical output.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sitecorpus.models.keyword_score import Tier

from .taxonomy import (
    CATEGORIES,
    CONTEXT_WINDOW,
    DEFAULT_TIER,
    EXACT_MATCH_BONUS,
    FIRST_PARTY_CATEGORIES,
    FIRST_PARTY_URL_MARKERS,
    NEWS_URL_MARKERS,
    RECENCY_BANDS,
    RECENCY_OLDEST,
    RECENCY_UNKNOWN,
    SCORE_CAP,
    SCORE_SCALE,
    SPECIFICITY_DEFAULT,
    SPECIFICITY_FIRST_PARTY,
    SPECIFICITY_NEWS,
    TAXONOMY,
    TIER_RULES,
)

_COMPILED = {
    category: [(entry, re.compile(entry["pattern"], re.IGNORECASE)) for entry in data["keywords"]]
    for category, data in TAXONOMY.items()
}
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ScoringDocument:
    url: str
    category: Optional[str]
    text: str
    discovered_at: Optional[datetime] = None


@dataclass
class KeywordMatch:
    keyword: str
    base_weight: float
    adjusted_weight: float
    count: int
    exact: bool
    context: Optional[str]
    source_doc: str

    def evidence(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "weight": self.adjusted_weight,
            "source_doc": self.source_doc,
            "context": self.context,
        }


@dataclass
class ScoreResult:
    category_scores: Dict[str, float]
    total_score: float
    tier: Tier
    keyword_matches: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    documents_analyzed: int = 0


def recency_multiplier(discovered_at: Optional[datetime], now: datetime) -> float:
    if discovered_at is None:
        return RECENCY_UNKNOWN
    months_ago = (now - discovered_at).total_seconds() / (60 * 60 * 24 * 30)
    for max_months, multiplier in RECENCY_BANDS:
        if months_ago <= max_months:
            return multiplier
    return RECENCY_OLDEST


def specificity_multiplier(url: Optional[str], category: Optional[str]) -> float:
    lowered = (url or "").lower()
    if any(marker in lowered for marker in FIRST_PARTY_URL_MARKERS):
        return SPECIFICITY_FIRST_PARTY
    if category in FIRST_PARTY_CATEGORIES:
        return SPECIFICITY_FIRST_PARTY
    if any(marker in lowered for marker in NEWS_URL_MARKERS):
        return SPECIFICITY_NEWS
    return SPECIFICITY_DEFAULT


def extract_context(text: str, start: int, end: int, window: int = CONTEXT_WINDOW) -> str:
    lo = max(0, start - window)
    hi = min(len(text), end + window)
    context = _WHITESPACE_RE.sub(" ", text[lo:hi]).strip()
    if lo > 0:
        context = "..." + context
    if hi < len(text):
        context = context + "..."
    return context


def analyze_document(document: ScoringDocument, now: datetime) -> Dict[str, List[KeywordMatch]]:
    matches: Dict[str, List[KeywordMatch]] = {category: [] for category in CATEGORIES}
    text = document.text or ""
    if not text:
        return matches

    multiplier = recency_multiplier(document.discovered_at, now) * specificity_multiplier(
        document.url, document.category
    )
    for category, entries in _COMPILED.items():
        for entry, pattern in entries:
            found = list(pattern.finditer(text))
            if not found:
                continue
            first = found[0]
            matches[category].append(
                KeywordMatch(
                    keyword=entry["name"],
                    base_weight=entry["weight"],
                    adjusted_weight=entry["weight"] * multiplier,
                    count=len(found),
                    exact=bool(entry.get("exact")),
                    context=extract_context(text, first.start(), first.end()),
                    source_doc=document.url,
                )
            )
    return matches


def category_score(matches: Iterable[KeywordMatch]) -> float:
    """Sum of first-seen weights per keyword name, scaled to 0-10."""
    score = 0.0
    seen = set()
    for match in matches:
        if match.keyword in seen:
            continue
        seen.add(match.keyword)
        score += match.adjusted_weight
        if match.exact:
            score += EXACT_MATCH_BONUS
    return min(SCORE_CAP, score * SCORE_SCALE)


def assign_tier(total_score: float, category_scores: Dict[str, float]) -> Tier:
    values = dict(category_scores)
    values["total"] = total_score
    for tier, thresholds in TIER_RULES:
        if any(values.get(name, 0.0) >= threshold for name, threshold in thresholds.items()):
            return Tier(tier)
    return Tier(DEFAULT_TIER)


def score_entity(documents: Iterable[ScoringDocument], now: datetime) -> ScoreResult:
    """Score one entity from all of its documents, in the order given."""
    all_matches: Dict[str, List[KeywordMatch]] = {category: [] for category in CATEGORIES}
    analyzed = 0
    for document in documents:
        analyzed += 1
        for category, matches in analyze_document(document, now).items():
            all_matches[category].extend(matches)

    category_scores = {category: category_score(all_matches[category]) for category in CATEGORIES}
    total = sum(category_scores.values()) / len(CATEGORIES)
    evidence = {
        category: [match.evidence() for match in matches]
        for category, matches in all_matches.items()
        if matches
    }
    return ScoreResult(
        category_scores=category_scores,
        total_score=total,
        tier=assign_tier(total, category_scores),
        keyword_matches=evidence,
        documents_analyzed=analyzed,
    )
