"""
Deal and pipeline stage models.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Float, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from .mixins import TaggedMixin


class DealStatus(str, Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"


class PipelineStage(Base):
    """A stage of the sales pipeline."""

    __tablename__ = "pipeline_stages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    probability = Column(Integer, default=0)
    position = Column(Integer, default=0)

    deals = relationship("Deal", back_populates="stage")

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<PipelineStage {self.name} ({self.probability}%)>"


class Deal(TaggedMixin, Base):
    """Deal record."""

    __tablename__ = "deals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    value = Column(Float, default=0)
    currency = Column(String(10), default="USD")
    probability = Column(Integer, default=0)
    status = Column(String(20), default=DealStatus.OPEN.value)
    lost_reason = Column(Text, nullable=True)

    expected_close_date = Column(Date, nullable=True)
    actual_close_date = Column(Date, nullable=True)

    owner_id = Column(String(36), nullable=True)
    created_by = Column(String(36), nullable=True)

    # Relationships
    stage_id = Column(String(36), ForeignKey("pipeline_stages.id"), nullable=True)
    stage = relationship("PipelineStage", back_populates="deals")
    contact_id = Column(String(36), ForeignKey("contacts.id"), nullable=True)
    contact = relationship("Contact")
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    company = relationship("Organization", back_populates="deals")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Deal {self.title} ({self.status})>"
