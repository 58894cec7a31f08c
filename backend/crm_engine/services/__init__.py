"""
Import/export and bulk mutation services.
"""
from .record_store import RecordStore, SQLAlchemyRecordStore
from .column_mapper import CsvTable, parse, infer_mapping, validate_mapping
from .duplicate_resolver import DuplicateResolver, resolve
from .csv_import_service import ImportExecutor, import_csv
from .export_service import ExportSerializer, export_filename
from .bulk_action_service import BulkMutationEngine
from .audit_log_service import AuditLogStore

__all__ = [
    "RecordStore", "SQLAlchemyRecordStore",
    "CsvTable", "parse", "infer_mapping", "validate_mapping",
    "DuplicateResolver", "resolve",
    "ImportExecutor", "import_csv",
    "ExportSerializer", "export_filename",
    "BulkMutationEngine",
    "AuditLogStore",
]
