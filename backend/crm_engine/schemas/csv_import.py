"""
CSV Import schemas for API validation.
"""
from datetime import datetime
from typing import List, Dict, Optional
from pydantic import BaseModel, Field

from .common import EntityKind, DuplicateStrategy


class ColumnMapping(BaseModel):
    """Mapping of one CSV column to a target field ("" = do not import)."""
    source_header: str
    target_field: str = ""
    required: bool = False
    sample: str = ""


class ImportPreview(BaseModel):
    """Read-only preview of an upload; never persisted."""
    entity_kind: EntityKind
    headers: List[str]
    rows: List[List[str]]
    total_rows: int
    mapping: List[ColumnMapping]
    duplicate_count: int = 0


class ImportExecuteRequest(BaseModel):
    """Request to execute an import with a finalized mapping."""
    entity_kind: EntityKind
    file_name: str = Field(..., min_length=1)
    content: str
    mapping: List[ColumnMapping]
    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.UPDATE


class ImportErrorEntry(BaseModel):
    """A row that failed during import."""
    row: int
    line: Optional[int] = None
    message: str


class ImportLogResponse(BaseModel):
    """Schema for ImportLog API response."""
    id: str
    user_id: str
    entity_kind: str
    file_name: str
    status: str
    row_count: int
    success_count: int
    error_count: int
    skipped_count: int
    errors: List[ImportErrorEntry] = []
    mapping: Dict[str, str] = {}
    created_at: datetime

    class Config:
        from_attributes = True
