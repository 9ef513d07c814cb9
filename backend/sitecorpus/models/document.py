"""Document and crawl attempt models."""
from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from sitecorpus.models.base import Base


class DocumentType(enum.Enum):
    html = "html"
    pdf = "pdf"
    embedded_pdf = "embedded_pdf"


class DocumentCategory(enum.Enum):
    portrait_of_graduate = "portrait_of_graduate"
    strategic_plan = "strategic_plan"
    other = "other"


class UrlRole(enum.Enum):
    homepage = "homepage"
    internal_link = "internal_link"
    pdf_link = "pdf_link"


class AttemptStatus(enum.Enum):
    success = "success"
    failure = "failure"
    skipped = "skipped"
    timeout = "timeout"


class Document(Base):
    """Extracted content at one URL for one entity."""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("entity_id", "url", name="uq_documents_entity_url"),
    )

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(32), ForeignKey("entities.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)

    document_type = Column(Enum(DocumentType), nullable=False)
    title = Column(Text, nullable=True)
    category = Column(Enum(DocumentCategory), default=DocumentCategory.other, index=True)

    extracted_text = Column(Text, nullable=True)
    text_length = Column(Integer, default=0)
    extraction_method = Column(String(30), nullable=True)  # html_scrape, pdf_parse
    page_depth = Column(Integer, default=0)
    content_hash = Column(String(64), nullable=True, index=True)

    discovered_at = Column(DateTime, default=datetime.utcnow)
    last_crawled_at = Column(DateTime, default=datetime.utcnow)

    chunks = relationship("EmbeddingChunk", back_populates="document", cascade="all, delete-orphan")


class CrawlAttempt(Base):
    """One fetch event. Rows are only ever inserted."""
    __tablename__ = "crawl_attempts"

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(32), ForeignKey("entities.id"), nullable=False, index=True)
    batch_id = Column(String(36), nullable=False, index=True)

    url = Column(Text, nullable=False)
    url_role = Column(Enum(UrlRole), nullable=False)
    status = Column(Enum(AttemptStatus), nullable=False, index=True)
    http_status = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    content_type = Column(String(255), nullable=True)

    document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    extraction_success = Column(Boolean, default=False)
    keywords_found = Column(JSON, default=list)
    response_time_ms = Column(Integer, nullable=True)

    crawled_at = Column(DateTime, default=datetime.utcnow)
