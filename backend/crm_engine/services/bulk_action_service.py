"""
Bulk actions over a selection of record ids.

One action is applied to every selected record. Deleting requires the
elevated role and is checked before any record is touched. Whether a store
failure on one record aborts the request or is collected and skipped is set
by `continue_on_error` (settings.bulk_continue_on_error by default). An aborted
request leaves every record as it was.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from ..config import get_settings
from ..exceptions import (
    AuthenticationRequired,
    PermissionDenied,
    RecordNotFound,
    StoreError,
    UnsupportedAction,
)
from ..schemas.bulk_action import (
    AssignAction,
    BulkActionBase,
    BulkActionResult,
    BulkFailure,
    DeleteAction,
    ExportAction,
    StageAction,
    StatusAction,
    TagAction,
)
from ..schemas.common import ActingUser, EntityKind
from ..schemas.export import ExportFilters, ExportOptions
from .entities import get_entity_spec
from .export_service import ExportSerializer, export_filename
from .record_store import RecordStore

logger = logging.getLogger(__name__)


def merge_tags(current: List[str], added: List[str]) -> List[str]:
    """Set union of the two tag lists, keeping existing tags first."""
    return list(dict.fromkeys([*current, *added]))


class BulkMutationEngine:
    """Applies one bulk action to every targeted record."""

    def __init__(
        self,
        store: RecordStore,
        continue_on_error: Optional[bool] = None,
        elevated_role: Optional[str] = None,
    ):
        settings = get_settings()
        self.store = store
        self.exporter = ExportSerializer(store)
        self.continue_on_error = (
            settings.bulk_continue_on_error if continue_on_error is None else continue_on_error
        )
        self.elevated_role = elevated_role or settings.elevated_role

    def apply(self, request: BulkActionBase, acting_user: Optional[ActingUser]) -> BulkActionResult:
        if acting_user is None:
            raise AuthenticationRequired("An authenticated user is required for bulk actions")

        spec = get_entity_spec(request.entity_kind)
        logger.info(
            f"Bulk {request.action} on {len(request.entity_ids)} {spec.kind.value} "
            f"by user {acting_user.id}"
        )

        if isinstance(request, ExportAction):
            return self._export(request)
        if isinstance(request, DeleteAction):
            return self._delete(request, acting_user)
        if isinstance(request, AssignAction):
            changes = {"owner_id": request.data.owner_id}
            return self._set_fields(request, changes)
        if isinstance(request, StatusAction):
            if request.data.status not in spec.statuses:
                raise UnsupportedAction(
                    f"Invalid {spec.kind.value} status '{request.data.status}'. "
                    f"Allowed: {', '.join(spec.statuses)}"
                )
            return self._set_fields(request, {"status": request.data.status})
        if isinstance(request, StageAction):
            if spec.kind != EntityKind.DEALS:
                raise UnsupportedAction("Only deals can be moved to a pipeline stage")
            changes: Dict[str, Any] = {"stage_id": request.data.stage_id}
            if request.data.probability is not None:
                changes["probability"] = request.data.probability
            return self._set_fields(request, changes)
        if isinstance(request, TagAction):
            return self._add_tags(request)

        raise UnsupportedAction(f"Unsupported action: {request.action}")

    # ===== ACTIONS =====

    def _set_fields(self, request: BulkActionBase, changes: Dict[str, Any]) -> BulkActionResult:
        def mutate(record_id: str) -> None:
            self.store.update(request.entity_kind, record_id, changes)

        return self._each(request, mutate)

    def _add_tags(self, request: TagAction) -> BulkActionResult:
        # Read-modify-write per record: each record keeps its own tags
        def mutate(record_id: str) -> None:
            record = self.store.get(request.entity_kind, record_id)
            if record is None:
                raise RecordNotFound(EntityKind(request.entity_kind).value, record_id)
            tags = merge_tags(record.get("tags") or [], request.data.tags)
            self.store.update(request.entity_kind, record_id, {"tags": tags})

        return self._each(request, mutate)

    def _delete(self, request: DeleteAction, acting_user: ActingUser) -> BulkActionResult:
        if acting_user.role != self.elevated_role:
            logger.warning(f"User {acting_user.id} ({acting_user.role}) denied bulk delete")
            raise PermissionDenied("Only administrators can perform bulk delete operations")

        def mutate(record_id: str) -> None:
            self.store.delete(request.entity_kind, record_id)

        return self._each(request, mutate)

    def _export(self, request: ExportAction) -> BulkActionResult:
        options = ExportOptions(
            entity_kind=request.entity_kind,
            fields=request.data.fields,
            filters=ExportFilters(ids=list(request.entity_ids)),
            include_relations=request.data.include_relations,
            header_format=request.data.header_format,
        )
        csv_text, count = self.exporter.render(options)
        return BulkActionResult(
            action=request.action,
            entity_kind=request.entity_kind,
            affected=count,
            csv=csv_text,
            file_name=export_filename(request.entity_kind),
        )

    # ===== HELPERS =====

    def _each(self, request: BulkActionBase, mutate: Callable[[str], None]) -> BulkActionResult:
        if self.continue_on_error:
            return self._apply_each(request, mutate)
        # Abort mode writes the whole selection or none of it
        with self.store.unit_of_work():
            return self._apply_each(request, mutate)

    def _apply_each(self, request: BulkActionBase, mutate: Callable[[str], None]) -> BulkActionResult:
        affected = 0
        failed: List[BulkFailure] = []

        for record_id in request.entity_ids:
            try:
                mutate(record_id)
                affected += 1
            except RecordNotFound:
                logger.warning(f"Bulk {request.action}: record {record_id} no longer exists, skipped")
            except StoreError as e:
                if not self.continue_on_error:
                    logger.error(f"Bulk {request.action} aborted at record {record_id}: {e}")
                    raise
                logger.warning(f"Bulk {request.action} failed for record {record_id}: {e}")
                failed.append(BulkFailure(id=record_id, message=str(e)))

        logger.info(f"Bulk {request.action} done: {affected} affected, {len(failed)} failed")
        return BulkActionResult(
            action=request.action,
            entity_kind=request.entity_kind,
            affected=affected,
            failed=failed,
        )
