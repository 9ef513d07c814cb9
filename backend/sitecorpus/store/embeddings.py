"""Embedding chunk persistence, pending-document paging and the vector index."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import case, delete, distinct, exists, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.document import Document, DocumentCategory
from sitecorpus.models.embedding import EmbeddingChunk, VECTOR_INDEX_NAME
from sitecorpus.models.entity import Entity
from sitecorpus.services.embeddings.models import ChunkRow, PendingDocument

logger = logging.getLogger(__name__)


def vector_literal(vector: Iterable[float]) -> str:
    return "[" + ",".join(repr(float(value)) for value in vector) + "]"


class EmbeddingStore:
    def __init__(self, session_maker: async_sessionmaker, chunk_text_chars: int = 5000):
        self.session_maker = session_maker
        self.chunk_text_chars = chunk_text_chars

    async def embedded_content_hashes(self) -> Set[str]:
        query = (
            select(distinct(Document.content_hash))
            .where(Document.content_hash.isnot(None))
            .where(exists().where(EmbeddingChunk.document_id == Document.id))
        )
        async with self.session_maker() as session:
            return set((await session.execute(query)).scalars().all())

    async def fetch_pending(
        self,
        limit: int,
        exclude_ids: Optional[List[int]] = None,
        min_text_length: int = 100,
        category: Optional[str] = None,
    ) -> List[PendingDocument]:
        """Next page of documents without chunks, most valuable categories and shortest texts first."""
        has_chunks = exists().where(EmbeddingChunk.document_id == Document.id)
        priority = case(
            (Document.category == DocumentCategory.strategic_plan, 1),
            (Document.category == DocumentCategory.portrait_of_graduate, 2),
            else_=3,
        )
        query = (
            select(
                Document.id,
                Document.extracted_text,
                Document.content_hash,
                Document.category,
                Document.text_length,
                Entity.name,
                Entity.jurisdiction,
            )
            .join(Entity, Entity.id == Document.entity_id, isouter=True)
            .where(
                Document.extracted_text.isnot(None),
                Document.text_length > min_text_length,
                ~has_chunks,
            )
        )
        if category:
            query = query.where(Document.category == DocumentCategory(category))
        if exclude_ids:
            query = query.where(Document.id.not_in(exclude_ids))
        query = query.order_by(priority, Document.text_length, Document.id).limit(limit)

        async with self.session_maker() as session:
            rows = (await session.execute(query)).all()
        return [
            PendingDocument(
                id=row.id,
                text=row.extracted_text,
                content_hash=row.content_hash,
                category=row.category.value if row.category is not None else None,
                text_length=row.text_length or 0,
                entity_name=row.name,
                jurisdiction=row.jurisdiction,
            )
            for row in rows
        ]

    def _row_values(self, row: ChunkRow) -> Dict[str, Any]:
        return {
            "document_id": row.document_id,
            "chunk_index": row.chunk_index,
            "chunk_text": row.chunk_text[: self.chunk_text_chars],
            "embedding": row.embedding,
        }

    async def _insert(self, values: List[Dict[str, Any]]) -> None:
        stmt = pg_insert(EmbeddingChunk).on_conflict_do_nothing(
            index_elements=[EmbeddingChunk.document_id, EmbeddingChunk.chunk_index]
        )
        async with self.session_maker() as session:
            await session.execute(stmt, values)
            await session.commit()

    async def write_chunks(self, rows: List[ChunkRow], batch_size: int = 50) -> int:
        """Grouped multi-row inserts, falling back to one row at a time. Returns rows written."""
        written = 0
        for start in range(0, len(rows), max(1, batch_size)):
            group = [self._row_values(row) for row in rows[start:start + batch_size]]
            try:
                await self._insert(group)
                written += len(group)
                continue
            except SQLAlchemyError as exc:
                logger.warning("Grouped chunk write of %d rows failed, retrying per row: %s", len(group), exc)
            for values in group:
                try:
                    await self._insert([values])
                    written += 1
                except SQLAlchemyError as exc:
                    logger.error(
                        "Chunk write failed for document %s chunk %s: %s",
                        values["document_id"], values["chunk_index"], exc,
                        extra={"document_id": values["document_id"]},
                    )
        return written

    async def delete_for_document(self, document_id: int) -> None:
        async with self.session_maker() as session:
            await session.execute(delete(EmbeddingChunk).where(EmbeddingChunk.document_id == document_id))
            await session.commit()

    async def count(self) -> int:
        async with self.session_maker() as session:
            return int((await session.execute(select(func.count(EmbeddingChunk.id)))).scalar_one())

    async def rebuild_index(self, lists: int) -> None:
        async with self.session_maker() as session:
            await session.execute(text(f"DROP INDEX IF EXISTS {VECTOR_INDEX_NAME}"))
            await session.execute(
                text(
                    f"CREATE INDEX {VECTOR_INDEX_NAME} ON embedding_chunks "
                    f"USING ivfflat (embedding vector_cosine_ops) WITH (lists = {int(lists)})"
                )
            )
            await session.commit()

    async def search(self, vector: List[float], limit: int = 10) -> List[Dict[str, Any]]:
        """Nearest chunks through the ``search_documents`` SQL function."""
        query = text(
            "SELECT document_id, entity_id, document_title, chunk_text, similarity "
            "FROM search_documents(CAST(:embedding AS vector), :limit_n)"
        )
        async with self.session_maker() as session:
            rows = (await session.execute(query, {"embedding": vector_literal(vector), "limit_n": limit})).all()
        return [dict(row._mapping) for row in rows]
