"""
Export schemas.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from .common import EntityKind, HeaderFormat


class ExportFilters(BaseModel):
    """Filters applied to the record query. Unset filters are ignored."""
    ids: Optional[List[str]] = None
    status: Optional[str] = None
    owner_id: Optional[str] = None
    search: Optional[str] = None
    tag: Optional[str] = None
    lead_score_min: Optional[int] = None
    lead_score_max: Optional[int] = None
    value_min: Optional[float] = None
    value_max: Optional[float] = None


class ExportOptions(BaseModel):
    """Schema for an export request."""
    entity_kind: EntityKind
    fields: List[str] = Field(default_factory=list)
    filters: ExportFilters = Field(default_factory=ExportFilters)
    include_relations: bool = False
    header_format: HeaderFormat = HeaderFormat.SNAKE_CASE
