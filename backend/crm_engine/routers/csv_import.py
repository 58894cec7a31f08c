"""
CSV Import router: preview an upload, execute an import, read import logs.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_acting_user, get_record_store
from ..exceptions import MappingError, MissingRequiredFields, StoreError, UploadError
from ..schemas.common import ActingUser, EntityKind
from ..schemas.csv_import import ImportExecuteRequest, ImportLogResponse, ImportPreview
from ..services.audit_log_service import AuditLogStore
from ..services.column_mapper import infer_mapping, parse
from ..services.csv_import_service import import_csv
from ..services.duplicate_resolver import DuplicateResolver
from ..services.record_store import SQLAlchemyRecordStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/import", tags=["csv-import"])

ALLOWED_EXTENSIONS = (".csv", ".txt")


@router.post("/preview", response_model=ImportPreview)
async def preview_csv_import(
    file: UploadFile = File(...),
    entity_kind: EntityKind = Form(EntityKind.CONTACTS),
    current_user: ActingUser = Depends(get_acting_user),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
):
    """
    Upload a CSV file and preview the import.
    Returns the detected column mapping, duplicate count and sample rows.
    """
    if not file.filename or not file.filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="File must be a CSV file (.csv)")

    try:
        content = await file.read()
        table = parse(content)
        return infer_mapping(table, entity_kind, duplicate_resolver=DuplicateResolver(store))
    except UploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        logger.error(f"Duplicate lookup failed during preview: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/execute", response_model=ImportLogResponse)
def execute_csv_import(
    request: ImportExecuteRequest,
    current_user: ActingUser = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """
    Execute the import with the finalized mapping.
    Row failures are reported in the returned log, not as an error response.
    """
    try:
        return import_csv(
            store=SQLAlchemyRecordStore(db),
            audit_log=AuditLogStore(db),
            raw=request.content,
            file_name=request.file_name,
            mapping=request.mapping,
            entity_kind=request.entity_kind,
            duplicate_strategy=request.duplicate_strategy,
            acting_user=current_user,
        )
    except UploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MissingRequiredFields as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "fields": e.fields})
    except MappingError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        logger.error(f"Import execution failed: {e}")
        raise HTTPException(status_code=502, detail=f"Import failed: {e}")


@router.get("/logs", response_model=List[ImportLogResponse])
def list_import_logs(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: ActingUser = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """List the current user's import logs, newest first."""
    return AuditLogStore(db).list(current_user.id, limit=limit, offset=offset)


@router.get("/logs/{log_id}", response_model=ImportLogResponse)
def get_import_log(
    log_id: str,
    current_user: ActingUser = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Get a single import log (must belong to current user)."""
    log = AuditLogStore(db).get(current_user.id, log_id)
    if not log:
        raise HTTPException(status_code=404, detail="Import log not found")
    return log
