"""
SQLAlchemy models for the CRM record store and the import audit log.
"""
from .user import User, UserRole
from .organization import Organization, OrganizationStatus
from .contact import Contact, ContactStatus
from .deal import Deal, DealStatus, PipelineStage
from .import_log import ImportLog

__all__ = [
    "User",
    "UserRole",
    "Organization",
    "OrganizationStatus",
    "Contact",
    "ContactStatus",
    "Deal",
    "DealStatus",
    "PipelineStage",
    "ImportLog",
]
