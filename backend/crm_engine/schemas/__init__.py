"""
Pydantic schemas for request/response validation.
"""
from .common import EntityKind, DuplicateStrategy, HeaderFormat, ActingUser
from .csv_import import (
    ColumnMapping, ImportPreview, ImportExecuteRequest, ImportErrorEntry, ImportLogResponse,
)
from .export import ExportFilters, ExportOptions
from .bulk_action import BulkActionRequest, BulkActionResult, parse_bulk_action

__all__ = [
    "EntityKind", "DuplicateStrategy", "HeaderFormat", "ActingUser",
    "ColumnMapping", "ImportPreview", "ImportExecuteRequest", "ImportErrorEntry",
    "ImportLogResponse",
    "ExportFilters", "ExportOptions",
    "BulkActionRequest", "BulkActionResult", "parse_bulk_action",
]
