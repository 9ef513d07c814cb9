"""Semantic search over embedded chunks."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .client import EmbeddingDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    document_id: int
    entity_id: Optional[str]
    document_title: Optional[str]
    chunk_text: str
    similarity: float


class SemanticSearch:
    def __init__(self, dispatcher: EmbeddingDispatcher, store):
        self.dispatcher = dispatcher
        self.store = store

    async def search(self, query: str, limit: int = 10) -> List[SearchHit]:
        """Chunks closest to ``query`` by cosine similarity, best first."""
        query = (query or "").strip()
        if not query:
            return []
        result = await self.dispatcher.embed([query])
        vector = result.vectors[0] if result.vectors else None
        if vector is None:
            logger.warning("Could not embed search query %r", query[:80])
            return []
        rows = await self.store.search(vector, limit=limit)
        return [
            SearchHit(
                document_id=row["document_id"],
                entity_id=row.get("entity_id"),
                document_title=row.get("document_title"),
                chunk_text=row["chunk_text"],
                similarity=float(row["similarity"]),
            )
            for row in rows
        ]
