"""Data models for the document crawler."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sitecorpus.models.document import AttemptStatus, DocumentCategory, DocumentType, UrlRole


@dataclass
class FetchResult:
    url: str
    success: bool
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    content: bytes = b""
    encoding: str = "utf-8"
    final_url: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False
    elapsed_ms: int = 0

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    @property
    def is_pdf(self) -> bool:
        return "pdf" in (self.content_type or "").lower()


@dataclass
class LinkSet:
    """Links pulled from one page, already resolved to absolute URLs."""
    internal: List[str] = field(default_factory=list)
    binary: List[str] = field(default_factory=list)
    embedded_binary: List[str] = field(default_factory=list)


@dataclass
class ExtractedContent:
    text: str = ""
    title: Optional[str] = None
    links: LinkSet = field(default_factory=LinkSet)
    method: str = "html_scrape"
    success: bool = True
    error: Optional[str] = None


@dataclass
class DocumentRecord:
    """A document ready to be upserted on (entity_id, url)."""
    entity_id: str
    url: str
    document_type: DocumentType
    title: Optional[str]
    category: DocumentCategory
    extracted_text: str
    text_length: int
    extraction_method: str
    page_depth: int
    content_hash: str


@dataclass
class UpsertResult:
    document_id: int
    created: bool
    content_changed: bool


@dataclass
class CrawlAttemptRecord:
    entity_id: str
    batch_id: str
    url: str
    url_role: UrlRole
    status: AttemptStatus
    http_status: Optional[int] = None
    error_message: Optional[str] = None
    content_type: Optional[str] = None
    document_id: Optional[int] = None
    extraction_success: bool = False
    keywords_found: List[str] = field(default_factory=list)
    response_time_ms: Optional[int] = None
    crawled_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class EntityCrawlResult:
    entity_id: str
    status: str  # success | failed | skipped
    entry_url: Optional[str] = None
    strategy: Optional[str] = None
    documents: int = 0
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class CrawlRunSummary:
    batch_id: str
    entities: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    documents: int = 0
    attempts_by_status: Dict[str, int] = field(default_factory=dict)
    by_strategy: Dict[str, int] = field(default_factory=dict)

    def add(self, result: EntityCrawlResult) -> None:
        self.entities += 1
        if result.status == "success":
            self.succeeded += 1
        elif result.status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.documents += result.documents
        if result.strategy:
            self.by_strategy[result.strategy] = self.by_strategy.get(result.strategy, 0) + 1

    def count_attempt(self, status: AttemptStatus) -> None:
        self.attempts_by_status[status.value] = self.attempts_by_status.get(status.value, 0) + 1

    def as_dict(self) -> Dict[str, object]:
        return {
            "batch_id": self.batch_id,
            "entities": self.entities,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "documents": self.documents,
            "attempts_by_status": dict(self.attempts_by_status),
            "by_strategy": dict(self.by_strategy),
        }
