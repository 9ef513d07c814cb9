"""Document persistence, keyed and deduplicated on (entity_id, url)."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, distinct, exists, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.document import AttemptStatus, CrawlAttempt, Document, UrlRole
from sitecorpus.services.crawler.models import DocumentRecord, UpsertResult
from sitecorpus.services.scoring.engine import ScoringDocument

logger = logging.getLogger(__name__)


class DocumentStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def upsert(self, record: DocumentRecord) -> UpsertResult:
        """Insert or refresh one document; a re-crawl never creates a second row."""
        now = datetime.utcnow()
        async with self.session_maker() as session:
            previous = (
                await session.execute(
                    select(Document.id, Document.content_hash).where(
                        Document.entity_id == record.entity_id,
                        Document.url == record.url,
                    )
                )
            ).first()

            stmt = pg_insert(Document).values(
                entity_id=record.entity_id,
                url=record.url,
                document_type=record.document_type,
                title=record.title,
                category=record.category,
                extracted_text=record.extracted_text,
                text_length=record.text_length,
                extraction_method=record.extraction_method,
                page_depth=record.page_depth,
                content_hash=record.content_hash,
                discovered_at=now,
                last_crawled_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Document.entity_id, Document.url],
                set_={
                    "extracted_text": stmt.excluded.extracted_text,
                    "text_length": stmt.excluded.text_length,
                    "category": stmt.excluded.category,
                    "content_hash": stmt.excluded.content_hash,
                    "title": stmt.excluded.title,
                    "last_crawled_at": now,
                },
            ).returning(Document.id)
            document_id = (await session.execute(stmt)).scalar_one()
            await session.commit()

        if previous is None:
            return UpsertResult(document_id=document_id, created=True, content_changed=True)
        return UpsertResult(
            document_id=document_id,
            created=False,
            content_changed=previous.content_hash != record.content_hash,
        )

    async def documents_for_scoring(self, entity_id: str) -> List[ScoringDocument]:
        async with self.session_maker() as session:
            rows = (
                await session.execute(
                    select(
                        Document.url,
                        Document.category,
                        Document.extracted_text,
                        Document.discovered_at,
                    )
                    .where(
                        Document.entity_id == entity_id,
                        Document.extracted_text.isnot(None),
                        Document.text_length > 0,
                    )
                    .order_by(Document.url, Document.id)
                )
            ).all()
        return [
            ScoringDocument(
                url=row.url,
                category=row.category.value if row.category is not None else None,
                text=row.extracted_text,
                discovered_at=row.discovered_at,
            )
            for row in rows
        ]

    async def entity_ids_with_documents(self, batch_id: Optional[str] = None) -> List[str]:
        async with self.session_maker() as session:
            if batch_id:
                query = (
                    select(distinct(CrawlAttempt.entity_id))
                    .where(CrawlAttempt.batch_id == batch_id)
                    .order_by(CrawlAttempt.entity_id)
                )
            else:
                query = select(distinct(Document.entity_id)).order_by(Document.entity_id)
            rows = (await session.execute(query)).scalars().all()
        return list(rows)

    async def failed_binary_extractions(self, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        """(entity_id, url) pairs whose binary downloaded fine but never yielded text."""
        has_document = exists().where(
            and_(Document.entity_id == CrawlAttempt.entity_id, Document.url == CrawlAttempt.url)
        )
        query = (
            select(CrawlAttempt.entity_id, CrawlAttempt.url)
            .where(
                CrawlAttempt.url_role == UrlRole.pdf_link,
                CrawlAttempt.http_status == 200,
                CrawlAttempt.extraction_success.is_(False),
                CrawlAttempt.status != AttemptStatus.success,
                ~has_document,
            )
            .distinct()
            .order_by(CrawlAttempt.entity_id, CrawlAttempt.url)
        )
        if limit:
            query = query.limit(limit)
        async with self.session_maker() as session:
            rows = (await session.execute(query)).all()
        return [(row.entity_id, row.url) for row in rows]
