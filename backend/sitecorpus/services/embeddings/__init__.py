from .chunking import chunk_document, metadata_header, normalize_text, split_text
from .client import EmbeddingDispatcher, OpenAIEmbeddingBackend, classify_embedding_error, embedding_retry_policy
from .models import ChunkRow, EmbeddingResult, EmbeddingRunStats, PendingDocument
from .pipeline import EmbeddingPipeline, index_list_count
from .search import SearchHit, SemanticSearch

__all__ = [
    "ChunkRow",
    "EmbeddingDispatcher",
    "EmbeddingPipeline",
    "EmbeddingResult",
    "EmbeddingRunStats",
    "OpenAIEmbeddingBackend",
    "PendingDocument",
    "SearchHit",
    "SemanticSearch",
    "chunk_document",
    "classify_embedding_error",
    "embedding_retry_policy",
    "index_list_count",
    "metadata_header",
    "normalize_text",
    "split_text",
]
