"""Entity model - organizations whose websites are crawled.

Rows are written by the per-registry loaders; this package only reads them.
"""
from sqlalchemy import Column, String, DateTime, Text
from datetime import datetime

from sitecorpus.models.base import Base


class Entity(Base):
    __tablename__ = "entities"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    jurisdiction = Column(String(8), nullable=True, index=True)

    contact_email = Column(String(255), nullable=True)
    secondary_contact_email = Column(String(255), nullable=True)

    # Known URL hints, one column per source registry
    primary_registry_url = Column(Text, nullable=True)
    secondary_registry_url = Column(Text, nullable=True)
    contact_record_url = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def url_hints(self):
        return [
            hint
            for hint in (self.primary_registry_url, self.secondary_registry_url, self.contact_record_url)
            if hint
        ]

    def emails(self):
        return [email for email in (self.contact_email, self.secondary_contact_email) if email]
