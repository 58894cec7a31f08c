"""
CSV parsing and column mapping detection.

Turns raw CSV text into a CsvTable, guesses which target field each header
corresponds to, and validates a (possibly user-edited) mapping before it is
executed.
"""
import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ..config import get_settings
from ..exceptions import (
    ParseError,
    UploadError,
    MissingRequiredFields,
    DuplicateTargetField,
    UnknownTargetField,
)
from ..schemas.csv_import import ColumnMapping, ImportPreview
from .entities import get_entity_spec

logger = logging.getLogger(__name__)

QUOTE_CHARS = "\"'"


@dataclass(frozen=True)
class CsvTable:
    """Parsed header row plus data rows. Every row is as long as the header."""
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    # Physical file line of each data row (header = line 1)
    line_numbers: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.rows)

    def column_index(self, header: str) -> Optional[int]:
        try:
            return self.headers.index(header)
        except ValueError:
            return None


def _clean_cell(cell: str) -> str:
    """Trim whitespace and any stray surrounding quote characters."""
    cell = cell.strip()
    if len(cell) >= 2 and cell[0] == cell[-1] and cell[0] in QUOTE_CHARS:
        cell = cell[1:-1].strip()
    return cell


def _decode(raw: Union[str, bytes]) -> str:
    max_bytes = get_settings().max_upload_bytes
    size = len(raw) if isinstance(raw, bytes) else len(raw.encode("utf-8", errors="replace"))
    if size > max_bytes:
        raise UploadError(f"File exceeds the {max_bytes} byte upload limit")
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError as e:
            raise UploadError("File encoding not supported. Please use UTF-8.") from e
    return raw.lstrip("\ufeff")


def parse(raw: Union[str, bytes], delimiter: Optional[str] = None) -> CsvTable:
    """
    Parse CSV text into a CsvTable.

    Rows whose cell count differs from the header, and rows with only empty
    cells, are dropped. Raises ParseError when no header or no data row is
    left.
    """
    text = _decode(raw)
    delimiter = delimiter or get_settings().csv_delimiter

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    headers: Optional[Tuple[str, ...]] = None
    rows: List[Tuple[str, ...]] = []
    line_numbers: List[int] = []
    dropped = 0

    try:
        for record in reader:
            # line_num is the last physical line consumed by this record
            cells = tuple(_clean_cell(c) for c in record)
            if headers is None:
                if not any(cells):
                    continue
                headers = cells
                continue
            if len(cells) != len(headers) or not any(cells):
                if record:
                    dropped += 1
                continue
            rows.append(cells)
            line_numbers.append(reader.line_num)
    except csv.Error as e:
        raise ParseError(f"Invalid CSV format: {e}") from e

    if headers is None or not rows:
        raise ParseError("CSV file must contain at least a header row and one data row")

    if dropped:
        logger.info(f"Dropped {dropped} malformed or empty rows while parsing")

    return CsvTable(headers=headers, rows=tuple(rows), line_numbers=tuple(line_numbers))


def detect_target_field(header: str, entity_kind) -> str:
    """Return the first target field whose rule matches the header, or ""."""
    spec = get_entity_spec(entity_kind)
    for pattern, target in spec.header_rules:
        if pattern.search(header):
            return target
    return ""


def infer_mapping(
    table: CsvTable,
    entity_kind,
    duplicate_resolver=None,
    preview_rows: Optional[int] = None,
) -> ImportPreview:
    """
    Build an editable best-guess mapping and a bounded preview of the table.

    When a duplicate resolver is given and the kind's duplicate key column
    is mapped, the preview also counts rows matching existing records.
    """
    spec = get_entity_spec(entity_kind)
    if preview_rows is None:
        preview_rows = get_settings().import_preview_rows

    first_row = table.rows[0] if table.rows else ()
    mapping: List[ColumnMapping] = []
    for index, header in enumerate(table.headers):
        target = detect_target_field(header, spec.kind)
        mapping.append(ColumnMapping(
            source_header=header,
            target_field=target,
            required=target in spec.required_fields,
            sample=first_row[index] if index < len(first_row) else "",
        ))

    duplicate_count = 0
    if duplicate_resolver is not None:
        duplicate_count = duplicate_resolver.count_duplicates(table, mapping, spec.kind)

    return ImportPreview(
        entity_kind=spec.kind,
        headers=list(table.headers),
        rows=[list(row) for row in table.rows[:preview_rows]],
        total_rows=len(table.rows),
        mapping=mapping,
        duplicate_count=duplicate_count,
    )


def validate_mapping(mapping: List[ColumnMapping], entity_kind) -> None:
    """
    Check a mapping can be executed for the kind.

    Raises UnknownTargetField, DuplicateTargetField or MissingRequiredFields.
    """
    spec = get_entity_spec(entity_kind)

    claimed: Dict[str, List[str]] = {}
    for entry in mapping:
        target = entry.target_field.strip()
        if not target:
            continue
        if target not in spec.importable_fields:
            raise UnknownTargetField(target)
        claimed.setdefault(target, []).append(entry.source_header)

    for target, headers in claimed.items():
        if len(headers) > 1:
            raise DuplicateTargetField(target, headers)

    missing = [f for f in spec.required_fields if f not in claimed]
    if missing:
        raise MissingRequiredFields(missing)


def mapping_as_dict(mapping: List[ColumnMapping]) -> Dict[str, str]:
    """Finalized mapping in the form stored on the import log."""
    return {entry.source_header: entry.target_field for entry in mapping}
