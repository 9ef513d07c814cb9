"""Entity selection for crawl runs."""

from typing import List, Optional

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.document import AttemptStatus, CrawlAttempt, Document
from sitecorpus.models.entity import Entity

CRAWL_MODES = ("pending", "failed_retry", "empty_text", "all")


class EntityStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def select_for_crawl(
        self,
        mode: str = "pending",
        jurisdiction: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Entity]:
        """Entities to crawl in this run.

        ``pending``: never attempted. ``failed_retry``: attempted, failed, and
        still without documents. ``empty_text``: has documents but none with
        text. ``all``: everything.
        """
        if mode not in CRAWL_MODES:
            raise ValueError(f"Unknown crawl mode: {mode}")

        attempted = exists().where(CrawlAttempt.entity_id == Entity.id)
        failed = exists().where(
            and_(
                CrawlAttempt.entity_id == Entity.id,
                CrawlAttempt.status.in_([AttemptStatus.failure, AttemptStatus.timeout]),
            )
        )
        has_document = exists().where(Document.entity_id == Entity.id)
        has_text = exists().where(and_(Document.entity_id == Entity.id, Document.text_length > 0))

        query = select(Entity)
        if mode == "pending":
            query = query.where(~attempted)
        elif mode == "failed_retry":
            query = query.where(failed, ~has_document)
        elif mode == "empty_text":
            query = query.where(has_document, ~has_text)
        if jurisdiction:
            query = query.where(Entity.jurisdiction == jurisdiction.upper())
        query = query.order_by(Entity.id)
        if limit:
            query = query.limit(limit)

        async with self.session_maker() as session:
            return list((await session.execute(query)).scalars().all())

    async def get(self, entity_id: str) -> Optional[Entity]:
        async with self.session_maker() as session:
            return await session.get(Entity, entity_id)
