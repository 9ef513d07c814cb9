"""Append-only crawl attempt log."""

from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.document import AttemptStatus, CrawlAttempt
from sitecorpus.services.crawler.models import CrawlAttemptRecord


def _clip(value: Optional[str], size: int) -> Optional[str]:
    return value[:size] if value else None


class CrawlLog:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def record(self, attempt: CrawlAttemptRecord) -> None:
        async with self.session_maker() as session:
            session.add(
                CrawlAttempt(
                    entity_id=attempt.entity_id,
                    batch_id=attempt.batch_id,
                    url=attempt.url,
                    url_role=attempt.url_role,
                    status=attempt.status,
                    http_status=attempt.http_status,
                    error_message=_clip(attempt.error_message, 2000),
                    content_type=_clip(attempt.content_type, 255),
                    document_id=attempt.document_id,
                    extraction_success=attempt.extraction_success,
                    keywords_found=list(attempt.keywords_found),
                    response_time_ms=attempt.response_time_ms,
                    crawled_at=attempt.crawled_at,
                )
            )
            await session.commit()

    async def last_failure(self, entity_id: str) -> Optional[Tuple[str, Optional[str]]]:
        """(url, error) of the entity's most recent failed or timed-out attempt."""
        async with self.session_maker() as session:
            row = (
                await session.execute(
                    select(CrawlAttempt.url, CrawlAttempt.error_message)
                    .where(
                        CrawlAttempt.entity_id == entity_id,
                        CrawlAttempt.status.in_([AttemptStatus.failure, AttemptStatus.timeout]),
                    )
                    .order_by(CrawlAttempt.crawled_at.desc(), CrawlAttempt.id.desc())
                    .limit(1)
                )
            ).first()
        if row is None:
            return None
        return row.url, row.error_message
