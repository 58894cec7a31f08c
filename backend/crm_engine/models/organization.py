"""
Organization model - a company the CRM tracks.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Float, DateTime, Text
from sqlalchemy.orm import relationship

from ..database import Base
from .mixins import TaggedMixin


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PROSPECT = "prospect"
    CUSTOMER = "customer"
    PARTNER = "partner"


class Organization(TaggedMixin, Base):
    """Organization (company) record."""

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=True, index=True)
    industry = Column(String(100), nullable=True)
    size = Column(String(50), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    annual_revenue = Column(Float, nullable=True)
    employee_count = Column(Integer, nullable=True)
    founded_year = Column(Integer, nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    twitter_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    status = Column(String(50), default=OrganizationStatus.ACTIVE.value)
    owner_id = Column(String(36), nullable=True)
    created_by = Column(String(36), nullable=True)

    contacts = relationship("Contact", back_populates="company")
    deals = relationship("Deal", back_populates="company")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Organization {self.name} ({self.domain})>"
