"""Data models for the embedding pipeline."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class PendingDocument:
    """A stored document that has no embedding chunks yet."""
    id: int
    text: str
    content_hash: Optional[str]
    category: Optional[str]
    text_length: int
    entity_name: Optional[str] = None
    jurisdiction: Optional[str] = None


@dataclass
class ChunkRow:
    document_id: int
    chunk_index: int
    chunk_text: str
    embedding: List[float] = field(default_factory=list)


@dataclass
class EmbeddingResult:
    vectors: List[Optional[List[float]]]  # None where the text could not be embedded
    tokens: int = 0
    calls: int = 1
    failed: int = 0
    errors: int = 0


@dataclass
class EmbeddingRunStats:
    documents_processed: int = 0
    documents_deduplicated: int = 0
    documents_skipped: int = 0
    chunks_embedded: int = 0
    chunks_failed: int = 0
    chunks_write_failed: int = 0
    api_calls: int = 0
    api_errors: int = 0
    tokens_used: int = 0
    index_rebuilt: bool = False
    stopped: bool = False

    def estimated_cost(self, cost_per_million_tokens: float = 0.02) -> float:
        return self.tokens_used / 1_000_000 * cost_per_million_tokens

    def as_dict(self, cost_per_million_tokens: float = 0.02) -> Dict[str, object]:
        return {
            "documents_processed": self.documents_processed,
            "documents_deduplicated": self.documents_deduplicated,
            "documents_skipped": self.documents_skipped,
            "chunks_embedded": self.chunks_embedded,
            "chunks_failed": self.chunks_failed,
            "chunks_write_failed": self.chunks_write_failed,
            "api_calls": self.api_calls,
            "api_errors": self.api_errors,
            "tokens_used": self.tokens_used,
            "estimated_cost_usd": round(self.estimated_cost(cost_per_million_tokens), 4),
            "index_rebuilt": self.index_rebuilt,
            "stopped": self.stopped,
        }
