"""
Record store: typed CRUD over contacts, organizations and deals.

The engine talks to the store only through the `RecordStore` protocol.
`SQLAlchemyRecordStore` is the implementation backed by the application
database; every write commits on its own so one rejected row never rolls
back another, except inside `unit_of_work()`, where writes are held until
the block ends and are all rolled back if it raises.
"""
import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, ContextManager, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import inspect, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..exceptions import StoreError, RecordValidationError, RecordNotFound
from ..models import Contact
from ..schemas.common import EntityKind
from ..schemas.export import ExportFilters
from .entities import get_entity_spec

logger = logging.getLogger(__name__)

# Columns the engine never writes through create/update
PROTECTED_FIELDS = frozenset({"id", "created_at", "updated_at"})


class RecordStore(Protocol):
    """What the engine needs from the record store."""

    def create(self, kind: EntityKind, fields: Dict[str, Any]) -> str: ...

    def update(self, kind: EntityKind, record_id: str, fields: Dict[str, Any]) -> None: ...

    def delete(self, kind: EntityKind, record_id: str) -> None: ...

    def get(self, kind: EntityKind, record_id: str) -> Optional[Dict[str, Any]]: ...

    def find_by_key(self, kind: EntityKind, key_field: str, values: Iterable[str]) -> Dict[str, str]: ...

    def query(
        self,
        kind: EntityKind,
        filters: Optional[ExportFilters] = None,
        relations: Iterable[str] = (),
    ) -> List[Dict[str, Any]]: ...

    def unit_of_work(self) -> ContextManager[Any]: ...


def record_to_dict(record) -> Dict[str, Any]:
    """Flatten an ORM record into a plain dict of its column values."""
    data: Dict[str, Any] = {}
    for attr in inspect(record).mapper.column_attrs:
        data[attr.key] = getattr(record, attr.key)
    if "tags_json" in data:
        data.pop("tags_json")
        data["tags"] = record.tags
    if isinstance(record, Contact):
        data["name"] = record.display_name
    return data


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _chunks(values: List[str], size: int):
    for start in range(0, len(values), size):
        yield values[start:start + size]


class SQLAlchemyRecordStore:
    """Record store backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self.chunk_size = get_settings().duplicate_lookup_chunk_size
        self._deferred = False

    @contextmanager
    def unit_of_work(self):
        """Hold every write in the block in one transaction; roll all back on error."""
        self._deferred = True
        try:
            yield self
        except Exception:
            self.db.rollback()
            raise
        else:
            self._deferred = False
            self._commit("commit unit of work")
        finally:
            self._deferred = False

    # ===== WRITES =====

    def create(self, kind: EntityKind, fields: Dict[str, Any]) -> str:
        spec = get_entity_spec(kind)
        for required in spec.required_fields:
            value = fields.get(required)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise RecordValidationError(f"Missing required field: {required}")

        record = spec.model()
        self._assign(record, fields)
        self.db.add(record)
        self._commit(f"create {spec.kind.value}")
        return record.id

    def update(self, kind: EntityKind, record_id: str, fields: Dict[str, Any]) -> None:
        spec = get_entity_spec(kind)
        record = self._get_record(spec, record_id)
        if record is None:
            raise RecordNotFound(spec.kind.value, record_id)

        self._assign(record, fields)
        record.updated_at = datetime.utcnow()
        self._commit(f"update {spec.kind.value} {record_id}")

    def delete(self, kind: EntityKind, record_id: str) -> None:
        spec = get_entity_spec(kind)
        record = self._get_record(spec, record_id)
        if record is None:
            raise RecordNotFound(spec.kind.value, record_id)

        self.db.delete(record)
        self._commit(f"delete {spec.kind.value} {record_id}")

    # ===== READS =====

    def get(self, kind: EntityKind, record_id: str) -> Optional[Dict[str, Any]]:
        spec = get_entity_spec(kind)
        record = self._get_record(spec, record_id)
        return record_to_dict(record) if record is not None else None

    def find_by_key(self, kind: EntityKind, key_field: str, values: Iterable[str]) -> Dict[str, str]:
        """
        Map each key value to the id of an existing record holding it.

        Runs one IN (...) query per chunk of distinct values, never one per
        row. When several records share a value the first one returned wins.
        """
        spec = get_entity_spec(kind)
        column = getattr(spec.model, key_field, None)
        if column is None:
            raise StoreError(f"{spec.kind.value} has no field '{key_field}'")

        distinct = sorted({v for v in values if v})
        found: Dict[str, str] = {}
        try:
            for chunk in _chunks(distinct, self.chunk_size):
                rows = (
                    self.db.query(spec.model.id, column)
                    .filter(column.in_(chunk))
                    .order_by(spec.model.created_at)
                    .all()
                )
                for record_id, key_value in rows:
                    found.setdefault(key_value, record_id)
        except SQLAlchemyError as e:
            logger.error(f"Key lookup on {spec.kind.value}.{key_field} failed: {e}")
            raise StoreError(f"Key lookup failed: {e}") from e
        return found

    def query(
        self,
        kind: EntityKind,
        filters: Optional[ExportFilters] = None,
        relations: Iterable[str] = (),
    ) -> List[Dict[str, Any]]:
        """Fetch records matching the filters, in the database's natural order."""
        spec = get_entity_spec(kind)
        model = spec.model
        filters = filters or ExportFilters()
        relations = [r for r in relations if r in spec.relations]

        query = self.db.query(model)
        for relation in relations:
            query = query.options(selectinload(getattr(model, relation)))

        if filters.ids is not None:
            query = query.filter(model.id.in_(filters.ids))
        if filters.status:
            query = query.filter(model.status == filters.status)
        if filters.owner_id:
            query = query.filter(model.owner_id == filters.owner_id)
        if filters.search and spec.search_fields:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(*[getattr(model, f).ilike(pattern) for f in spec.search_fields]))
        if filters.tag:
            # Tags are stored as a JSON array of strings; match one whole element
            needle = _like_escape(json.dumps(filters.tag, ensure_ascii=False))
            query = query.filter(model.tags_json.like(f"%{needle}%", escape="\\"))
        if spec.kind == EntityKind.CONTACTS:
            if filters.lead_score_min is not None:
                query = query.filter(model.lead_score >= filters.lead_score_min)
            if filters.lead_score_max is not None:
                query = query.filter(model.lead_score <= filters.lead_score_max)
        if spec.kind == EntityKind.DEALS:
            if filters.value_min is not None:
                query = query.filter(model.value >= filters.value_min)
            if filters.value_max is not None:
                query = query.filter(model.value <= filters.value_max)

        try:
            records = query.all()
        except SQLAlchemyError as e:
            logger.error(f"Query on {spec.kind.value} failed: {e}")
            raise StoreError(f"Query failed: {e}") from e

        results = []
        for record in records:
            data = record_to_dict(record)
            for relation in relations:
                related = getattr(record, relation)
                data[relation] = record_to_dict(related) if related is not None else None
            results.append(data)
        return results

    # ===== HELPERS =====

    def _get_record(self, spec, record_id: str):
        try:
            return self.db.query(spec.model).filter(spec.model.id == record_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Lookup of {spec.kind.value} {record_id} failed: {e}")
            raise StoreError(f"Lookup failed: {e}") from e

    def _assign(self, record, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if key in PROTECTED_FIELDS or not hasattr(type(record), key):
                raise RecordValidationError(f"Unknown field: {key}")
            setattr(record, key, value)

    def _commit(self, what: str) -> None:
        try:
            if self._deferred:
                self.db.flush()
            else:
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store write failed ({what}): {e}")
            raise StoreError(f"Could not {what}: {e}") from e
