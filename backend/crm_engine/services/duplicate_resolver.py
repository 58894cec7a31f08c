"""
Duplicate detection for imports.

Existing records are looked up once per run for every distinct key value in
the file; each row is then routed to skip, update or create from that map.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from ..schemas.common import DuplicateStrategy
from ..schemas.csv_import import ColumnMapping
from .entities import get_entity_spec
from .record_store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Skip:
    existing_id: str


@dataclass(frozen=True)
class UpdateRecord:
    existing_id: str


@dataclass(frozen=True)
class CreateRecord:
    pass


Resolution = Union[Skip, UpdateRecord, CreateRecord]


def resolve(strategy: DuplicateStrategy, existing_id: Optional[str] = None) -> Resolution:
    """Decide what happens to one row given the id of the record it duplicates."""
    if existing_id is None:
        return CreateRecord()
    strategy = DuplicateStrategy(strategy)
    if strategy == DuplicateStrategy.SKIP:
        return Skip(existing_id)
    if strategy == DuplicateStrategy.UPDATE:
        return UpdateRecord(existing_id)
    # create_new deliberately allows duplicates
    return CreateRecord()


def key_column(mapping: List[ColumnMapping], entity_kind) -> Optional[str]:
    """Source header mapped to the kind's duplicate key, if any."""
    key_field = get_entity_spec(entity_kind).duplicate_key
    for entry in mapping:
        if entry.target_field == key_field:
            return entry.source_header
    return None


class DuplicateResolver:
    """Finds records in the store that incoming rows would duplicate."""

    def __init__(self, store: RecordStore):
        self.store = store

    def find_existing(self, entity_kind, key_values: Iterable[str]) -> Dict[str, str]:
        """Map each key value found in the store to the existing record id."""
        spec = get_entity_spec(entity_kind)
        values = {v.strip() for v in key_values if v and v.strip()}
        if not values:
            return {}
        existing = self.store.find_by_key(spec.kind, spec.duplicate_key, values)
        logger.info(
            f"Duplicate lookup on {spec.kind.value}.{spec.duplicate_key}: "
            f"{len(existing)} of {len(values)} values already exist"
        )
        return existing

    def existing_for_table(self, table, mapping: List[ColumnMapping], entity_kind) -> Dict[str, str]:
        """Run the single batched lookup for every key value in the table."""
        header = key_column(mapping, entity_kind)
        if header is None:
            return {}
        index = table.column_index(header)
        if index is None:
            return {}
        return self.find_existing(entity_kind, (row[index] for row in table.rows))

    def count_duplicates(self, table, mapping: List[ColumnMapping], entity_kind) -> int:
        """Number of rows whose key matches an existing record."""
        header = key_column(mapping, entity_kind)
        index = table.column_index(header) if header is not None else None
        if index is None:
            return 0
        existing = self.existing_for_table(table, mapping, entity_kind)
        return sum(1 for row in table.rows if row[index].strip() in existing)
