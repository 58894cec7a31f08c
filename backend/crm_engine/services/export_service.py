"""
CSV export of filtered record sets.
"""
import csv
import io
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from ..schemas.common import HeaderFormat
from ..schemas.export import ExportOptions
from .entities import get_entity_spec
from .record_store import RecordStore

logger = logging.getLogger(__name__)


def readable_header(field_path: str) -> str:
    """'company.name' -> 'Company Name', 'lead_score' -> 'Lead Score'."""
    words = [w for w in re.split(r"[._]", field_path) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def format_header(field_path: str, header_format: HeaderFormat) -> str:
    if HeaderFormat(header_format) == HeaderFormat.READABLE:
        return readable_header(field_path)
    return field_path


def resolve_path(record: Dict[str, Any], field_path: str) -> Any:
    """Walk a dotted path through nested relation dicts; missing -> None."""
    value: Any = record
    for part in field_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
        if value is None:
            return None
    return value


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ";".join(str(v) for v in value)
    return str(value)


def export_filename(entity_kind, on: Optional[date] = None) -> str:
    """`{entityKind}_export_{ISO-date}.csv`."""
    kind = get_entity_spec(entity_kind).kind.value
    on = on or date.today()
    return f"{kind}_export_{on.isoformat()}.csv"


class ExportSerializer:
    """Renders a filtered record set as CSV text."""

    def __init__(self, store: RecordStore):
        self.store = store

    def selected_fields(self, options: ExportOptions) -> List[str]:
        spec = get_entity_spec(options.entity_kind)
        if options.fields:
            return list(options.fields)
        fields = list(spec.default_export_fields)
        if options.include_relations:
            fields.extend(f for f in spec.relation_fields if f not in fields)
        return fields

    def export(self, options: ExportOptions) -> str:
        """
        Query the store and render one header line plus one line per record,
        in the store's result order.
        """
        csv_text, _ = self.render(options)
        return csv_text

    def render(self, options: ExportOptions) -> Tuple[str, int]:
        """CSV text and the number of records it holds."""
        spec = get_entity_spec(options.entity_kind)
        fields = self.selected_fields(options)

        # Load every relation a selected path points into
        relations = {f.split(".", 1)[0] for f in fields if "." in f}
        if options.include_relations:
            relations.update(spec.relations)

        records = self.store.query(spec.kind, options.filters, relations=sorted(relations))

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([format_header(f, options.header_format) for f in fields])
        for record in records:
            writer.writerow([format_cell(resolve_path(record, f)) for f in fields])

        logger.info(f"Exported {len(records)} {spec.kind.value} records with {len(fields)} fields")
        return buffer.getvalue().rstrip("\n"), len(records)
