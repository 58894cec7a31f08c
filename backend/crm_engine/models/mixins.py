"""
Shared column helpers for CRM records.
"""
import json
from typing import List

from sqlalchemy import Column, Text


class TaggedMixin:
    """Stores a record's tags as a JSON array in a text column."""

    tags_json = Column("tags", Text, nullable=True)

    @property
    def tags(self) -> List[str]:
        """Get tags list from JSON."""
        if self.tags_json:
            try:
                return list(json.loads(self.tags_json))
            except (json.JSONDecodeError, TypeError):
                return []
        return []

    @tags.setter
    def tags(self, value: List[str]):
        self.tags_json = json.dumps(list(value or []), ensure_ascii=False)
