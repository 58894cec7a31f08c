"""
Bulk actions router.
"""
import logging

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException

from ..dependencies import get_acting_user, get_record_store
from ..exceptions import PermissionDenied, StoreError, UnsupportedAction
from ..schemas.bulk_action import BulkAction, BulkActionResult
from ..schemas.common import ActingUser
from ..services.bulk_action_service import BulkMutationEngine
from ..services.record_store import SQLAlchemyRecordStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/bulk", tags=["bulk-actions"])


@router.post("", response_model=BulkActionResult)
def perform_bulk_action(
    request: Annotated[BulkAction, Body(discriminator="action")],
    current_user: ActingUser = Depends(get_acting_user),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
):
    """Apply one action to every selected record."""
    try:
        return BulkMutationEngine(store).apply(request, current_user)
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except UnsupportedAction as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        logger.error(f"Bulk {request.action} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Bulk action failed: {e}")
