from sitecorpus.models.base import Base
from sitecorpus.models.entity import Entity
from sitecorpus.models.document import (
    Document,
    CrawlAttempt,
    DocumentType,
    DocumentCategory,
    UrlRole,
    AttemptStatus,
)
from sitecorpus.models.url_correction import UrlCorrection
from sitecorpus.models.keyword_score import KeywordScore, Tier
from sitecorpus.models.embedding import EmbeddingChunk, EMBEDDING_DIMENSION, VECTOR_INDEX_NAME

__all__ = [
    "Base",
    "Entity",
    "Document", "CrawlAttempt", "DocumentType", "DocumentCategory", "UrlRole", "AttemptStatus",
    "UrlCorrection",
    "KeywordScore", "Tier",
    "EmbeddingChunk", "EMBEDDING_DIMENSION", "VECTOR_INDEX_NAME",
]
