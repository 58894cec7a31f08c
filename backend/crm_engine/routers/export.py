"""
Export router: filtered record sets as a CSV download.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..dependencies import get_acting_user, get_record_store
from ..exceptions import StoreError
from ..schemas.common import ActingUser
from ..schemas.export import ExportOptions
from ..services.export_service import ExportSerializer, export_filename
from ..services.record_store import SQLAlchemyRecordStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/export", tags=["export"])


@router.post("")
def export_records(
    options: ExportOptions,
    current_user: ActingUser = Depends(get_acting_user),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
):
    """Export records of one kind as CSV."""
    try:
        csv_text = ExportSerializer(store).export(options)
    except StoreError as e:
        logger.error(f"Export failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=502, detail=f"Export failed: {e}")

    filename = export_filename(options.entity_kind)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
