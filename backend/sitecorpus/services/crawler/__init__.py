"""Document crawler: fetch, extract, categorize and store entity web documents."""

from .models import (
    FetchResult,
    LinkSet,
    ExtractedContent,
    DocumentRecord,
    UpsertResult,
    CrawlAttemptRecord,
    EntityCrawlResult,
    CrawlRunSummary,
)
from .fetcher import Fetcher, fetch_retry_policy
from .extraction import extract
from .keywords import detect_keywords, categorize
from .links import score_link, select_links
from .orchestrator import CrawlOrchestrator, target_from_entity, content_hash

__all__ = [
    # Main entry points
    "CrawlOrchestrator",
    "target_from_entity",

    # Components
    "Fetcher",
    "fetch_retry_policy",
    "extract",
    "detect_keywords",
    "categorize",
    "score_link",
    "select_links",
    "content_hash",

    # Data models
    "FetchResult",
    "LinkSet",
    "ExtractedContent",
    "DocumentRecord",
    "UpsertResult",
    "CrawlAttemptRecord",
    "EntityCrawlResult",
    "CrawlRunSummary",
]
