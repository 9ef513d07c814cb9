from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, Numeric, String
from datetime import datetime
import enum

from sitecorpus.models.base import Base


class Tier(enum.Enum):
    tier1 = "tier1"  # strong signals
    tier2 = "tier2"
    tier3 = "tier3"  # limited signals


class KeywordScore(Base):
    """Taxonomy scores for one entity, overwritten on every scoring run."""
    __tablename__ = "keyword_scores"

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(32), ForeignKey("entities.id"), nullable=False, unique=True)

    readiness_score = Column(Numeric(4, 2), default=0)
    alignment_score = Column(Numeric(4, 2), default=0)
    activation_score = Column(Numeric(4, 2), default=0)
    branding_score = Column(Numeric(4, 2), default=0)
    total_score = Column(Numeric(4, 2), default=0)
    tier = Column(Enum(Tier), nullable=False, index=True)

    # {category: [{keyword, weight, source_doc, context}, ...]}
    keyword_matches = Column(JSON, default=dict)
    documents_analyzed = Column(Integer, default=0)

    scored_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
