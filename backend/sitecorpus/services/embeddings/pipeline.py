"""Embedding pipeline: pages pending documents, chunks them, embeds and stores chunks."""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from .chunking import chunk_document
from .client import EmbeddingDispatcher
from .models import ChunkRow, EmbeddingResult, EmbeddingRunStats, PendingDocument

logger = logging.getLogger(__name__)


def index_list_count(total_vectors: int, min_lists: int = 100, max_lists: int = 1000) -> int:
    """ivfflat list count: sqrt of the row count, clamped."""
    return min(max(int(math.floor(math.sqrt(max(0, total_vectors)))), min_lists), max_lists)


@dataclass
class _QueuedDocument:
    document: PendingDocument
    chunks: List[str]


class EmbeddingPipeline:
    """
    Embeds every stored document that has no chunks yet.

    Documents whose content hash was already embedded (in an earlier run or
    earlier in this one) are skipped without calling the embedding service.
    Chunks are embedded in batches of ``batch_size``, ``concurrency`` batches
    at a time. A document is written only when all of its chunks have
    vectors, so its chunk indices are always contiguous from zero.
    """

    def __init__(
        self,
        store,
        dispatcher: EmbeddingDispatcher,
        batch_size: int = 150,
        page_size: int = 500,
        concurrency: int = 3,
        group_delay: float = 0.05,
        write_batch_size: int = 50,
        min_text_length: int = 100,
        exclusion_cap: int = 5000,
        chunk_max_chars: int = 6000,
        chunk_overlap: int = 800,
        chunk_min_chars: int = 100,
        max_document_chars: int = 50000,
        index_min_total: int = 1000,
        index_min_lists: int = 100,
        index_max_lists: int = 1000,
        stop_event: Optional[asyncio.Event] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
        sleep: Callable = asyncio.sleep,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.batch_size = max(1, batch_size)
        self.page_size = page_size
        self.concurrency = max(1, concurrency)
        self.group_delay = group_delay
        self.write_batch_size = write_batch_size
        self.min_text_length = min_text_length
        self.exclusion_cap = exclusion_cap
        self.chunk_max_chars = chunk_max_chars
        self.chunk_overlap = chunk_overlap
        self.chunk_min_chars = chunk_min_chars
        self.max_document_chars = max_document_chars
        self.index_min_total = index_min_total
        self.index_min_lists = index_min_lists
        self.index_max_lists = index_max_lists
        self.stop_event = stop_event or asyncio.Event()
        self.progress_callback = progress_callback
        self._sleep = sleep

    def _log(self, message: str) -> None:
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    def _chunks_for(self, document: PendingDocument) -> List[str]:
        return chunk_document(
            document.text,
            entity_name=document.entity_name,
            jurisdiction=document.jurisdiction,
            category=document.category,
            max_chars=self.chunk_max_chars,
            overlap=self.chunk_overlap,
            min_chars=self.chunk_min_chars,
            max_document_chars=self.max_document_chars,
        )

    async def run(self, max_documents: Optional[int] = None, category: Optional[str] = None) -> EmbeddingRunStats:
        stats = EmbeddingRunStats()
        seen_hashes: Set[str] = await self.store.embedded_content_hashes()
        handled: Set[int] = set()
        handled_order: List[int] = []
        queue: List[_QueuedDocument] = []
        queued_chunks = 0
        taken = 0
        self._log(f"Embedding run starting, {len(seen_hashes)} content hashes already embedded")

        while not self.stopping:
            if max_documents is not None and taken >= max_documents:
                break
            exclude = handled_order[-self.exclusion_cap:] if self.exclusion_cap else []
            page = await self.store.fetch_pending(
                self.page_size,
                exclude_ids=exclude,
                min_text_length=self.min_text_length,
                category=category,
            )
            fresh = [doc for doc in page if doc.id not in handled]
            if not fresh:
                break

            for document in fresh:
                if self.stopping or (max_documents is not None and taken >= max_documents):
                    break
                handled.add(document.id)
                handled_order.append(document.id)
                taken += 1

                if document.content_hash and document.content_hash in seen_hashes:
                    stats.documents_deduplicated += 1
                    continue
                chunks = self._chunks_for(document)
                if not chunks:
                    stats.documents_skipped += 1
                    continue
                if document.content_hash:
                    seen_hashes.add(document.content_hash)

                queue.append(_QueuedDocument(document=document, chunks=chunks))
                queued_chunks += len(chunks)
                if queued_chunks >= self.batch_size * self.concurrency:
                    await self._flush(queue, stats)
                    queue, queued_chunks = [], 0

            if queue and not self.stopping:
                await self._flush(queue, stats)
                queue, queued_chunks = [], 0
            self._log(
                f"Embedded {stats.documents_processed} documents, {stats.chunks_embedded} chunks so far"
            )

        if self.stopping:
            stats.stopped = True
            if queue:
                self._log(f"Stop requested, {len(queue)} queued documents left for the next run")

        if stats.chunks_embedded > 0:
            await self._maybe_rebuild_index(stats)
        self._log(f"Embedding run complete: {stats.as_dict()}")
        return stats

    async def _embed_all(self, texts: List[str], stats: EmbeddingRunStats) -> List[Optional[List[float]]]:
        batches = [texts[i:i + self.batch_size] for i in range(0, len(texts), self.batch_size)]
        vectors: List[Optional[List[float]]] = []
        for start in range(0, len(batches), self.concurrency):
            if start:
                if self.stopping:
                    break
                await self._sleep(self.group_delay)
            group = batches[start:start + self.concurrency]
            results: List[EmbeddingResult] = await asyncio.gather(
                *(self.dispatcher.embed(batch) for batch in group)
            )
            for result in results:
                vectors.extend(result.vectors)
                stats.api_calls += result.calls
                stats.api_errors += result.errors
                stats.tokens_used += result.tokens
        return vectors

    async def _flush(self, queue: List[_QueuedDocument], stats: EmbeddingRunStats) -> None:
        texts = [chunk for item in queue for chunk in item.chunks]
        vectors = await self._embed_all(texts, stats)

        offset = 0
        for item in queue:
            if offset + len(item.chunks) > len(vectors):
                # Stopped before this document was dispatched
                break
            doc_vectors = vectors[offset:offset + len(item.chunks)]
            offset += len(item.chunks)
            if any(vector is None for vector in doc_vectors):
                stats.chunks_failed += len(item.chunks)
                logger.warning(
                    "Document %s not embedded, %d chunk(s) failed",
                    item.document.id, sum(1 for v in doc_vectors if v is None),
                    extra={"document_id": item.document.id},
                )
                continue
            rows = [
                ChunkRow(document_id=item.document.id, chunk_index=index, chunk_text=chunk, embedding=vector)
                for index, (chunk, vector) in enumerate(zip(item.chunks, doc_vectors))
            ]
            await self._write_document(item.document.id, rows, stats)

    async def _write_document(self, document_id: int, rows: List[ChunkRow], stats: EmbeddingRunStats) -> None:
        written = await self.store.write_chunks(rows, batch_size=self.write_batch_size)
        if written == len(rows):
            stats.chunks_embedded += written
            stats.documents_processed += 1
            return
        stats.chunks_write_failed += len(rows)
        try:
            await self.store.delete_for_document(document_id)
        except SQLAlchemyError as exc:
            logger.error(
                "Could not remove partial chunks for document %s: %s", document_id, exc,
                extra={"document_id": document_id},
            )

    async def _maybe_rebuild_index(self, stats: EmbeddingRunStats) -> None:
        try:
            total = await self.store.count()
            if total < self.index_min_total:
                return
            lists = index_list_count(total, self.index_min_lists, self.index_max_lists)
            await self.store.rebuild_index(lists)
        except SQLAlchemyError as exc:
            logger.error("Vector index rebuild failed: %s", exc)
            return
        stats.index_rebuilt = True
        self._log(f"Rebuilt vector index over {total} chunks with {lists} lists")
