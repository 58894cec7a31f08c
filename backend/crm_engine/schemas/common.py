"""
Shared enums and the acting-user context.
"""
from enum import Enum
from pydantic import BaseModel


class EntityKind(str, Enum):
    """The three record kinds the engine operates over."""
    CONTACTS = "contacts"
    ORGANIZATIONS = "organizations"
    DEALS = "deals"

    @classmethod
    def _missing_(cls, value):
        # Accept singular names and the legacy "companies" name
        if isinstance(value, str):
            return _ENTITY_KIND_ALIASES.get(value.strip().lower())
        return None


_ENTITY_KIND_ALIASES = {
    "contact": EntityKind.CONTACTS,
    "organization": EntityKind.ORGANIZATIONS,
    "company": EntityKind.ORGANIZATIONS,
    "companies": EntityKind.ORGANIZATIONS,
    "deal": EntityKind.DEALS,
}


class DuplicateStrategy(str, Enum):
    """What to do with a row whose duplicate key matches an existing record."""
    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class HeaderFormat(str, Enum):
    SNAKE_CASE = "snake_case"
    READABLE = "readable"


class ActingUser(BaseModel):
    """The authenticated user on whose behalf an engine call runs."""
    id: str
    role: str

    class Config:
        from_attributes = True
