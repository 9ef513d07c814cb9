"""Crawl orchestrator: discovery, then fetch -> extract -> store -> log per entity."""

import asyncio
import hashlib
import logging
import uuid
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from sitecorpus.models.document import AttemptStatus, DocumentType, UrlRole
from sitecorpus.services.discovery.models import Discovery, DiscoveryTarget
from sitecorpus.services.discovery.normalize import normalize_url
from sitecorpus.services.discovery.waterfall import ALL_FAILED_MESSAGE, DiscoveryWaterfall, needs_correction
from sitecorpus.services.rate_limit import RateLimiter

from .constants import MAX_BINARY_LINKS, MAX_DOCUMENT_CHARS, MAX_EXTRACTED_LINKS, MAX_INTERNAL_PAGES
from .extraction import extract
from .fetcher import Fetcher
from .keywords import categorize, detect_keywords
from .links import select_links
from .models import (
    CrawlAttemptRecord,
    CrawlRunSummary,
    DocumentRecord,
    EntityCrawlResult,
    ExtractedContent,
    FetchResult,
)

logger = logging.getLogger(__name__)


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def target_from_entity(entity, last_failure: Optional[Tuple[str, Optional[str]]] = None) -> DiscoveryTarget:
    failed_url, error = last_failure if last_failure else (None, None)
    return DiscoveryTarget(
        entity_id=entity.id,
        name=entity.name,
        jurisdiction=entity.jurisdiction,
        url_hints=entity.url_hints(),
        emails=entity.emails(),
        last_failed_url=failed_url,
        last_error=error,
    )


class CrawlOrchestrator:
    """
    Runs entities through discovery and a one-hop crawl of their site.

    Per entity:
    1. Discovery waterfall finds a live entry URL
    2. Entry page is fetched, extracted and stored at depth 0
    3. Top-scoring PDF links, then internal links, are fetched sequentially
       and stored at depth 1

    Every fetch writes exactly one crawl attempt. Entities run in batches of
    ``concurrency``; one entity's failure never stops the batch.
    """

    def __init__(
        self,
        waterfall: DiscoveryWaterfall,
        fetcher: Fetcher,
        documents,
        crawl_log,
        corrections,
        embeddings=None,
        concurrency: int = 5,
        request_delay: float = 0.5,
        max_internal_pages: int = MAX_INTERNAL_PAGES,
        max_binary_links: int = MAX_BINARY_LINKS,
        max_extracted_links: int = MAX_EXTRACTED_LINKS,
        min_link_score: int = 1,
        max_document_chars: int = MAX_DOCUMENT_CHARS,
        stop_event: Optional[asyncio.Event] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.waterfall = waterfall
        self.fetcher = fetcher
        self.documents = documents
        self.crawl_log = crawl_log
        self.corrections = corrections
        self.embeddings = embeddings
        self.concurrency = max(1, concurrency)
        self.request_delay = request_delay
        self.max_internal_pages = max_internal_pages
        self.max_binary_links = max_binary_links
        self.max_extracted_links = max_extracted_links
        self.min_link_score = min_link_score
        self.max_document_chars = max_document_chars
        self.stop_event = stop_event
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    @property
    def stopping(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def run(self, targets: List[DiscoveryTarget], batch_id: Optional[str] = None) -> CrawlRunSummary:
        summary = CrawlRunSummary(batch_id=batch_id or str(uuid.uuid4()))
        self._log(f"Crawl batch {summary.batch_id}: {len(targets)} entities")

        for start in range(0, len(targets), self.concurrency):
            batch = targets[start:start + self.concurrency]
            if self.stopping:
                for target in batch:
                    summary.add(EntityCrawlResult(entity_id=target.entity_id, status="skipped",
                                                  error="Run stopped"))
                continue

            results = await asyncio.gather(
                *[self.crawl_entity(target, summary) for target in batch],
                return_exceptions=True,
            )
            for target, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Entity %s crashed: %s", target.entity_id, result,
                        exc_info=(type(result), result, result.__traceback__),
                        extra={"entity_id": target.entity_id, "batch_id": summary.batch_id},
                    )
                    result = EntityCrawlResult(entity_id=target.entity_id, status="failed", error=str(result))
                summary.add(result)

            self._log(
                f"Processed {min(start + self.concurrency, len(targets))}/{len(targets)} entities "
                f"({summary.succeeded} ok, {summary.failed} failed, {summary.documents} documents)"
            )

        self._log(f"Crawl batch {summary.batch_id} complete: {summary.as_dict()}")
        return summary

    async def crawl_entity(self, target: DiscoveryTarget, summary: CrawlRunSummary) -> EntityCrawlResult:
        result = EntityCrawlResult(entity_id=target.entity_id, status="failed")
        discovery = await self.waterfall.discover(target)

        if discovery is None:
            await self._record(summary, result, CrawlAttemptRecord(
                entity_id=target.entity_id,
                batch_id=summary.batch_id,
                url=target.primary_hint or "",
                url_role=UrlRole.homepage,
                status=AttemptStatus.failure,
                error_message=ALL_FAILED_MESSAGE,
                response_time_ms=0,
            ))
            result.error = ALL_FAILED_MESSAGE
            return result

        result.entry_url = discovery.url
        result.strategy = discovery.strategy
        await self._maybe_record_correction(target, discovery)

        limiter = RateLimiter(self.request_delay)
        if discovery.fetched is not None:
            homepage = discovery.fetched
        else:
            await limiter.wait()
            homepage = await self.fetcher.fetch(discovery.url)

        extracted = await self._handle_page(
            target, summary, result, discovery.url, homepage,
            role=UrlRole.homepage, depth=0,
        )
        if not homepage.success:
            result.error = homepage.error
            return result
        result.status = "success"
        if extracted is None:
            return result

        links = extracted.links
        pdf_targets = [(url, DocumentType.pdf) for url in select_links(links.binary, self.max_binary_links, 0)]
        pdf_targets.extend(
            (url, DocumentType.embedded_pdf)
            for url in select_links(links.embedded_binary, self.max_binary_links, 0)
            if url not in links.binary
        )
        pdf_targets = pdf_targets[: self.max_binary_links]
        internal = select_links(links.internal, self.max_internal_pages, self.min_link_score)

        for url, doc_type in pdf_targets:
            if self.stopping:
                break
            await limiter.wait()
            fetched = await self.fetcher.fetch(url, binary=True)
            await self._handle_page(target, summary, result, url, fetched,
                                    role=UrlRole.pdf_link, depth=1, doc_type=doc_type)

        for url in internal:
            if self.stopping:
                break
            await limiter.wait()
            fetched = await self.fetcher.fetch(url)
            await self._handle_page(target, summary, result, url, fetched,
                                    role=UrlRole.internal_link, depth=1)

        return result

    async def _handle_page(
        self,
        target: DiscoveryTarget,
        summary: CrawlRunSummary,
        result: EntityCrawlResult,
        url: str,
        fetched: FetchResult,
        role: UrlRole,
        depth: int,
        doc_type: Optional[DocumentType] = None,
    ) -> Optional[ExtractedContent]:
        """Extract, store and log one fetched page. Returns the extraction when text was stored."""
        attempt = CrawlAttemptRecord(
            entity_id=target.entity_id,
            batch_id=summary.batch_id,
            url=url,
            url_role=role,
            status=AttemptStatus.failure,
            http_status=fetched.status_code,
            content_type=fetched.content_type,
            response_time_ms=fetched.elapsed_ms,
        )
        if not fetched.success:
            attempt.status = AttemptStatus.timeout if fetched.timed_out else AttemptStatus.failure
            attempt.error_message = fetched.error
            await self._record(summary, result, attempt)
            return None

        if doc_type is None:
            doc_type = DocumentType.pdf if fetched.is_pdf else DocumentType.html
        declared = "html" if doc_type == DocumentType.html else "pdf"
        extracted = extract(
            fetched.content, declared, url,
            encoding=fetched.encoding, max_links=self.max_extracted_links,
        )
        if not extracted.success:
            attempt.error_message = extracted.error
            await self._record(summary, result, attempt)
            return None

        text = extracted.text.replace("\x00", "")
        if not text.strip():
            attempt.status = AttemptStatus.skipped
            attempt.error_message = "No extractable text"
            await self._record(summary, result, attempt)
            return extracted

        keywords = detect_keywords(text)
        record = DocumentRecord(
            entity_id=target.entity_id,
            url=url,
            document_type=doc_type,
            title=extracted.title,
            category=categorize(url, keywords),
            extracted_text=text[: self.max_document_chars],
            text_length=len(text),
            extraction_method=extracted.method,
            page_depth=depth,
            content_hash=content_hash(text),
        )
        attempt.status = AttemptStatus.success
        attempt.extraction_success = True
        attempt.keywords_found = keywords
        attempt.document_id = await self._store_document(record)
        if attempt.document_id is None:
            attempt.error_message = "Document write failed"
        else:
            result.documents += 1
        await self._record(summary, result, attempt)
        return extracted

    async def _store_document(self, record: DocumentRecord) -> Optional[int]:
        try:
            upserted = await self.documents.upsert(record)
        except SQLAlchemyError as exc:
            logger.warning("Document write failed for %s: %s", record.url, exc,
                           extra={"entity_id": record.entity_id})
            return None
        if upserted.content_changed and not upserted.created and self.embeddings is not None:
            # Changed text invalidates the existing chunks
            try:
                await self.embeddings.delete_for_document(upserted.document_id)
            except SQLAlchemyError as exc:
                logger.warning("Stale chunk delete failed for document %s: %s", upserted.document_id, exc,
                               extra={"entity_id": record.entity_id})
        return upserted.document_id

    async def _record(self, summary: CrawlRunSummary, result: EntityCrawlResult, attempt: CrawlAttemptRecord) -> None:
        result.attempts += 1
        summary.count_attempt(attempt.status)
        try:
            await self.crawl_log.record(attempt)
        except SQLAlchemyError as exc:
            logger.warning("Crawl log write failed for %s: %s", attempt.url, exc,
                           extra={"entity_id": attempt.entity_id, "batch_id": attempt.batch_id})

    async def _maybe_record_correction(self, target: DiscoveryTarget, discovery: Discovery) -> None:
        if not needs_correction(discovery.url, target.all_hints):
            return
        primary = target.primary_hint
        old_url = normalize_url(primary) or primary
        details = dict(discovery.details)
        details["entity_name"] = target.name
        discovery.details = details
        try:
            await self.corrections.record(target.entity_id, old_url, discovery)
        except SQLAlchemyError as exc:
            logger.warning("URL correction write failed for %s: %s", target.entity_id, exc)
        self._log(f"{target.entity_id}: corrected {old_url} -> {discovery.url} via {discovery.strategy}")

    async def refetch(
        self,
        entity_id: str,
        url: str,
        summary: CrawlRunSummary,
        role: UrlRole = UrlRole.pdf_link,
        doc_type: DocumentType = DocumentType.pdf,
        depth: int = 1,
    ) -> EntityCrawlResult:
        """Fetch and store a single known URL outside of discovery."""
        target = DiscoveryTarget(entity_id=entity_id, name="")
        result = EntityCrawlResult(entity_id=entity_id, status="failed", entry_url=url)
        fetched = await self.fetcher.fetch(url, binary=doc_type != DocumentType.html)
        await self._handle_page(target, summary, result, url, fetched, role=role, depth=depth, doc_type=doc_type)
        if result.documents:
            result.status = "success"
        return result
