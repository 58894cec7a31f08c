"""
User model - the acting user behind imports and bulk actions.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from ..database import Base


class UserRole:
    """Known user roles. `admin` is the elevated role by default."""
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class User(Base):
    """User model for authentication and record ownership."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Auth info
    email = Column(String(255), unique=True, nullable=False, index=True)

    # Profile info
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.MEMBER)

    # Account status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    import_logs = relationship("ImportLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
