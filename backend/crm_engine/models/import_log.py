"""
ImportLog model - append-only audit record of one import attempt.
"""
import json
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class ImportLog(Base):
    """Audit trail entry written once at the end of every import run."""

    __tablename__ = "import_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Owner
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user = relationship("User", back_populates="import_logs")

    entity_kind = Column(String(20), nullable=False)
    file_name = Column(String(255), nullable=False)
    status = Column(String(20), default="completed")  # completed / cancelled

    # Counters
    row_count = Column(Integer, default=0)
    success_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    skipped_count = Column(Integer, default=0)

    # JSON: [{"row": 2, "line": 3, "message": "..."}]
    errors_json = Column("errors", Text, nullable=True)
    # JSON: {"First Name": "first_name", "Notes": ""}
    mapping_json = Column("mapping", Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    @property
    def errors(self) -> list:
        """Get error entries from JSON."""
        if self.errors_json:
            try:
                return json.loads(self.errors_json)
            except (json.JSONDecodeError, TypeError):
                return []
        return []

    @errors.setter
    def errors(self, value: list):
        self.errors_json = json.dumps(list(value)) if value else None

    @property
    def mapping(self) -> dict:
        """Get source header -> target field mapping from JSON."""
        if self.mapping_json:
            try:
                return json.loads(self.mapping_json)
            except (json.JSONDecodeError, TypeError):
                return {}
        return {}

    @mapping.setter
    def mapping(self, value: dict):
        self.mapping_json = json.dumps(dict(value))

    def __repr__(self):
        return (
            f"<ImportLog {self.entity_kind} {self.file_name} "
            f"ok={self.success_count} err={self.error_count}>"
        )
