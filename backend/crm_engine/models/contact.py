"""
Contact model - a person in the CRM.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from .mixins import TaggedMixin


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PROSPECT = "prospect"
    CUSTOMER = "customer"


class Contact(TaggedMixin, Base):
    """Contact record."""

    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Personal info
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    title = Column(String(255), nullable=True)

    # Social
    linkedin_url = Column(String(500), nullable=True)
    twitter_url = Column(String(500), nullable=True)

    # CRM
    status = Column(String(50), default=ContactStatus.ACTIVE.value)
    lead_score = Column(Integer, default=0)
    lead_source = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    owner_id = Column(String(36), nullable=True)
    created_by = Column(String(36), nullable=True)

    last_contacted_at = Column(DateTime, nullable=True)
    last_interaction_at = Column(DateTime, nullable=True)

    # Company relationship
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    company = relationship("Organization", back_populates="contacts")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Contact {self.first_name} {self.last_name} - {self.email}>"

    @property
    def display_name(self) -> str:
        """Name for display."""
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p) or "Unknown"
