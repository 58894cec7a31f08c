"""
CSV import execution.

Rows are processed one at a time in file order. A row that fails is recorded
in the import log and the run moves on to the next row; only upload, mapping
and authentication problems stop a run before it starts.
"""
import logging
import math
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..exceptions import AuthenticationRequired, RowError, UploadError
from ..models import ImportLog
from ..schemas.common import ActingUser, DuplicateStrategy, EntityKind
from ..schemas.csv_import import ColumnMapping
from .audit_log_service import AuditLogStore
from .column_mapper import CsvTable, parse, validate_mapping, mapping_as_dict
from .duplicate_resolver import DuplicateResolver, Skip, UpdateRecord, resolve
from .entities import COMPANY_NAME_FIELD, EntitySpec, get_entity_spec
from .record_store import RecordStore

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"

RowResult = Union[str, RowError]


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def coerce_int(value: str) -> int:
    """Parse an integer, accepting "12.0"; anything unparseable becomes 0."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0


def coerce_float(value: str) -> float:
    """Parse a float; anything unparseable or non-finite becomes 0."""
    try:
        parsed = float(value)
    except ValueError:
        try:
            parsed = float(value.replace(",", ""))  # "1,250.50"
        except ValueError:
            return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def coerce_date(field: str, value: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError(f"Invalid date for {field}: '{value}' (expected YYYY-MM-DD)")


def split_tags(value: str) -> List[str]:
    return [tag.strip() for tag in value.split(";") if tag.strip()]


def build_fields(row: Tuple[str, ...], columns: List[Tuple[int, str]], spec: EntitySpec) -> Dict[str, Any]:
    """
    Map one data row to field values.

    Empty cells are left out so they never blank an existing value on update.
    Raises ValueError for a date that cannot be parsed.
    """
    fields: Dict[str, Any] = {}
    for index, target in columns:
        value = row[index].strip()
        if not value:
            continue
        if target in spec.tag_fields:
            fields[target] = split_tags(value)
        elif target in spec.int_fields:
            fields[target] = coerce_int(value)
        elif target in spec.float_fields:
            fields[target] = coerce_float(value)
        elif target in spec.date_fields:
            fields[target] = coerce_date(target, value)
        else:
            fields[target] = value
    return fields


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class ImportExecutor:
    """Applies a parsed CSV table to the record store and writes the audit log."""

    def __init__(self, store: RecordStore, audit_log: AuditLogStore):
        self.store = store
        self.audit_log = audit_log
        self.resolver = DuplicateResolver(store)

    def run(
        self,
        table: CsvTable,
        mapping: List[ColumnMapping],
        entity_kind,
        duplicate_strategy: DuplicateStrategy,
        acting_user: Optional[ActingUser],
        file_name: str = "import.csv",
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ImportLog:
        """
        Import every data row of the table and return the persisted ImportLog.

        Raises AuthenticationRequired, MappingError or UploadError before any
        row is processed; in those cases no log is written.
        """
        if acting_user is None:
            raise AuthenticationRequired("An authenticated user is required to import")

        spec = get_entity_spec(entity_kind)
        strategy = DuplicateStrategy(duplicate_strategy)
        validate_mapping(mapping, spec.kind)
        columns = self._mapped_columns(table, mapping)

        logger.info(
            f"Importing {len(table)} {spec.kind.value} rows from {file_name} "
            f"for user {acting_user.id} (strategy={strategy.value})"
        )

        existing = self.resolver.existing_for_table(table, mapping, spec.kind)
        company_ids = self._company_ids(table, columns)

        success_count = 0
        skipped_count = 0
        errors: List[RowError] = []
        status = "completed"

        for ordinal, (row, line) in enumerate(zip(table.rows, table.line_numbers), start=1):
            if should_cancel is not None and should_cancel():
                status = "cancelled"
                logger.info(f"Import of {file_name} cancelled before row {ordinal}")
                break

            result = self._import_row(
                row, ordinal, line, columns, spec, strategy, existing, company_ids, acting_user
            )
            if isinstance(result, RowError):
                logger.warning(f"Row {result.row} (line {result.line}) failed: {result.message}")
                errors.append(result)
            elif result == SKIPPED:
                skipped_count += 1
            else:
                success_count += 1

        log = ImportLog(
            user_id=acting_user.id,
            entity_kind=spec.kind.value,
            file_name=file_name,
            status=status,
            row_count=len(table),
            success_count=success_count,
            error_count=len(errors),
            skipped_count=skipped_count,
            created_at=datetime.utcnow(),
        )
        log.errors = [error.to_dict() for error in errors]
        log.mapping = mapping_as_dict(mapping)
        self.audit_log.save(log)

        logger.info(
            f"Import {log.id} finished: {success_count} ok, {len(errors)} errors, "
            f"{skipped_count} skipped of {len(table)} rows"
        )
        return log

    def _import_row(
        self,
        row: Tuple[str, ...],
        ordinal: int,
        line: int,
        columns: List[Tuple[int, str]],
        spec: EntitySpec,
        strategy: DuplicateStrategy,
        existing: Dict[str, str],
        company_ids: Dict[str, str],
        acting_user: ActingUser,
    ) -> RowResult:
        """Create, update or skip one row. Every failure comes back as a RowError."""
        try:
            fields = build_fields(row, columns, spec)

            company_name = fields.pop(COMPANY_NAME_FIELD, None)
            if company_name and company_name in company_ids:
                fields["company_id"] = company_ids[company_name]

            key_value = fields.get(spec.duplicate_key)
            existing_id = existing.get(key_value) if isinstance(key_value, str) else None
            resolution = resolve(strategy, existing_id)

            if isinstance(resolution, Skip):
                return SKIPPED
            if isinstance(resolution, UpdateRecord):
                self.store.update(spec.kind, resolution.existing_id, fields)
                return UPDATED

            fields.setdefault("created_by", acting_user.id)
            fields.setdefault("owner_id", acting_user.id)
            self.store.create(spec.kind, fields)
            return CREATED
        except Exception as e:
            return RowError(row=ordinal, line=line, message=str(e) or e.__class__.__name__)

    def _mapped_columns(self, table: CsvTable, mapping: List[ColumnMapping]) -> List[Tuple[int, str]]:
        columns = []
        for entry in mapping:
            if not entry.target_field:
                continue
            index = table.column_index(entry.source_header)
            if index is None:
                raise UploadError(f"Column '{entry.source_header}' is not present in the file")
            columns.append((index, entry.target_field))
        return columns

    def _company_ids(self, table: CsvTable, columns: List[Tuple[int, str]]) -> Dict[str, str]:
        """Resolve every organization name in the file with one batched lookup."""
        indexes = [index for index, target in columns if target == COMPANY_NAME_FIELD]
        if not indexes:
            return {}
        names = {row[indexes[0]].strip() for row in table.rows if row[indexes[0]].strip()}
        if not names:
            return {}
        return self.store.find_by_key(EntityKind.ORGANIZATIONS, "name", names)


def import_csv(
    store: RecordStore,
    audit_log: AuditLogStore,
    raw: Union[str, bytes],
    file_name: str,
    mapping: List[ColumnMapping],
    entity_kind,
    duplicate_strategy: DuplicateStrategy,
    acting_user: Optional[ActingUser],
    should_cancel: Optional[Callable[[], bool]] = None,
) -> ImportLog:
    """Parse raw CSV text and run the import in one call."""
    if acting_user is None:
        raise AuthenticationRequired("An authenticated user is required to import")
    table = parse(raw)
    executor = ImportExecutor(store, audit_log)
    return executor.run(
        table,
        mapping,
        entity_kind,
        duplicate_strategy,
        acting_user,
        file_name=file_name,
        should_cancel=should_cancel,
    )
