"""
Append-only storage of import logs.
"""
import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import StoreError
from ..models import ImportLog

logger = logging.getLogger(__name__)


class AuditLogStore:
    """Persists and lists ImportLog records. Logs are never updated or deleted."""

    def __init__(self, db: Session):
        self.db = db

    def save(self, log: ImportLog) -> str:
        """Persist a new log and return its id."""
        self.db.add(log)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving import log: {e}")
            raise StoreError(f"Could not save import log: {e}") from e
        self.db.refresh(log)
        return log.id

    def list(self, user_id: str, limit: Optional[int] = None, offset: int = 0) -> List[ImportLog]:
        """The user's import logs, newest first."""
        if limit is None:
            limit = get_settings().import_logs_page_size
        return (
            self.db.query(ImportLog)
            .filter(ImportLog.user_id == user_id)
            .order_by(desc(ImportLog.created_at))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get(self, user_id: str, log_id: str) -> Optional[ImportLog]:
        """A single log, only if it belongs to the user."""
        return (
            self.db.query(ImportLog)
            .filter(ImportLog.id == log_id, ImportLog.user_id == user_id)
            .first()
        )
