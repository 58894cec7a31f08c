"""
Error taxonomy for the import/export and bulk mutation engine.

Upload and mapping errors abort before any row is touched. Row errors are
collected into the import log and never raised past the executor. Permission
and store errors abort export and bulk requests as a whole.
"""
from dataclasses import dataclass
from typing import List


class CRMEngineError(Exception):
    """Base class for every error raised by the engine."""


class UploadError(CRMEngineError):
    """The uploaded file is unreadable or not a usable table."""


class ParseError(UploadError):
    """The CSV text has no header row or no data rows."""


class MappingError(CRMEngineError):
    """The column mapping cannot be executed as given."""


class MissingRequiredFields(MappingError):
    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required field mapping: {', '.join(self.fields)}")


class DuplicateTargetField(MappingError):
    def __init__(self, field: str, headers: List[str]):
        self.field = field
        self.headers = list(headers)
        super().__init__(
            f"Field '{field}' is mapped from more than one column: {', '.join(self.headers)}"
        )


class UnknownTargetField(MappingError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' cannot be imported")


class AuthenticationRequired(CRMEngineError):
    """No acting user was supplied."""


class PermissionDenied(CRMEngineError):
    """The acting user's role does not allow the requested action."""


class UnsupportedAction(CRMEngineError):
    """The action does not apply to the requested entity kind."""


class StoreError(CRMEngineError):
    """The record store failed or rejected a call."""


class RecordValidationError(StoreError):
    """The record store rejected the field values of a write."""


class RecordNotFound(StoreError):
    def __init__(self, entity_kind: str, record_id: str):
        self.entity_kind = entity_kind
        self.record_id = record_id
        super().__init__(f"{entity_kind} record {record_id} not found")


@dataclass(frozen=True)
class RowError:
    """A single row's failure, captured into ImportLog.errors."""
    row: int   # 1-based data row ordinal
    line: int  # 1-based physical line in the file (header = 1)
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "line": self.line, "message": self.message}
