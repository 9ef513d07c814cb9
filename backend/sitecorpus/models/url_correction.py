from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from datetime import datetime

from sitecorpus.models.base import Base


class UrlCorrection(Base):
    """A discovered site address that differs from every known hint."""
    __tablename__ = "url_corrections"

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(32), ForeignKey("entities.id"), nullable=False, index=True)

    old_url = Column(Text, nullable=True)
    new_url = Column(Text, nullable=False)
    discovery_method = Column(String(50), nullable=False)
    discovery_details = Column(JSON, default=dict)
    confidence = Column(Float, nullable=False)
    http_status = Column(Integer, nullable=True)
    validated = Column(Boolean, default=False)

    corrected_at = Column(DateTime, default=datetime.utcnow)
