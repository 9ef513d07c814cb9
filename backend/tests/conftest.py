from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from sitecorpus.models.document import AttemptStatus, UrlRole
from sitecorpus.services.crawler.models import CrawlAttemptRecord, DocumentRecord, UpsertResult
from sitecorpus.services.discovery.models import Discovery
from sitecorpus.services.embeddings.models import ChunkRow, PendingDocument
from sitecorpus.services.scoring.engine import ScoreResult, ScoringDocument


class FakeDocumentStore:
    def __init__(self):
        self.rows: Dict[Tuple[str, str], dict] = {}
        self.failed_binaries: List[Tuple[str, str]] = []
        self.clock = datetime.utcnow
        self._next_id = 1

    async def upsert(self, record: DocumentRecord) -> UpsertResult:
        key = (record.entity_id, record.url)
        previous = self.rows.get(key)
        now = self.clock()
        if previous is None:
            row = {"id": self._next_id, "discovered_at": now}
            self._next_id += 1
            self.rows[key] = row
        else:
            row = previous
        old_hash = row.get("content_hash")
        row.update(record.__dict__)
        row["category"] = record.category.value
        row["last_crawled_at"] = now
        if previous is None:
            return UpsertResult(document_id=row["id"], created=True, content_changed=True)
        return UpsertResult(document_id=row["id"], created=False, content_changed=old_hash != record.content_hash)

    def for_entity(self, entity_id: str) -> List[dict]:
        return [row for (owner, _), row in sorted(self.rows.items()) if owner == entity_id]

    async def documents_for_scoring(self, entity_id: str) -> List[ScoringDocument]:
        return [
            ScoringDocument(
                url=row["url"],
                category=row["category"],
                text=row["extracted_text"],
                discovered_at=row["discovered_at"],
            )
            for row in self.for_entity(entity_id)
            if row["text_length"] > 0
        ]

    async def entity_ids_with_documents(self, batch_id: Optional[str] = None) -> List[str]:
        return sorted({owner for owner, _ in self.rows})

    async def failed_binary_extractions(self, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        return self.failed_binaries[:limit] if limit else list(self.failed_binaries)


class FakeCrawlLog:
    def __init__(self):
        self.attempts: List[CrawlAttemptRecord] = []

    async def record(self, attempt: CrawlAttemptRecord) -> None:
        self.attempts.append(attempt)

    async def last_failure(self, entity_id: str) -> Optional[Tuple[str, Optional[str]]]:
        failures = [
            a for a in self.attempts
            if a.entity_id == entity_id and a.status in (AttemptStatus.failure, AttemptStatus.timeout)
        ]
        if not failures:
            return None
        return failures[-1].url, failures[-1].error_message

    def for_role(self, role: UrlRole) -> List[CrawlAttemptRecord]:
        return [a for a in self.attempts if a.url_role == role]


class FakeCorrectionStore:
    def __init__(self):
        self.records: List[Tuple[str, Optional[str], Discovery]] = []

    async def record(self, entity_id: str, old_url: Optional[str], discovery: Discovery) -> None:
        self.records.append((entity_id, old_url, discovery))


class FakeScoreStore:
    def __init__(self):
        self.scores: Dict[str, ScoreResult] = {}

    async def replace(self, entity_id: str, result: ScoreResult) -> None:
        self.scores[entity_id] = result


_PRIORITY = {"strategic_plan": 1, "portrait_of_graduate": 2}


class FakeEmbeddingStore:
    def __init__(self, documents: Optional[List[PendingDocument]] = None):
        self.documents: List[PendingDocument] = list(documents or [])
        self.chunks: Dict[int, List[ChunkRow]] = {}
        self.fail_writes_for: set = set()
        self.rebuilt_with: Optional[int] = None
        self.page_requests = 0
        self.deleted: List[int] = []

    async def embedded_content_hashes(self) -> set:
        return {doc.content_hash for doc in self.documents if doc.id in self.chunks and doc.content_hash}

    async def fetch_pending(self, limit, exclude_ids=None, min_text_length=100, category=None):
        self.page_requests += 1
        excluded = set(exclude_ids or [])
        pending = [
            doc for doc in self.documents
            if doc.id not in self.chunks
            and doc.id not in excluded
            and doc.text_length > min_text_length
            and (category is None or doc.category == category)
        ]
        pending.sort(key=lambda doc: (_PRIORITY.get(doc.category, 3), doc.text_length, doc.id))
        return pending[:limit]

    async def write_chunks(self, rows: List[ChunkRow], batch_size: int = 50) -> int:
        written = 0
        for row in rows:
            if row.document_id in self.fail_writes_for and row.chunk_index > 0:
                continue
            self.chunks.setdefault(row.document_id, []).append(row)
            written += 1
        return written

    async def delete_for_document(self, document_id: int) -> None:
        self.deleted.append(document_id)
        self.chunks.pop(document_id, None)

    async def count(self) -> int:
        return sum(len(rows) for rows in self.chunks.values())

    async def rebuild_index(self, lists: int) -> None:
        self.rebuilt_with = lists

    async def search(self, vector, limit=10):
        return []


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def crawl_log():
    return FakeCrawlLog()


@pytest.fixture
def correction_store():
    return FakeCorrectionStore()


@pytest.fixture
def score_store():
    return FakeScoreStore()


@pytest.fixture
def make_embedding_store():
    return FakeEmbeddingStore
