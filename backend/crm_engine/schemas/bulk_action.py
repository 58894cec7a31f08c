"""
Bulk action schemas.

Each action carries its own payload type; the request is a union tagged
by the `action` field.
"""
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .common import EntityKind, HeaderFormat


class AssignData(BaseModel):
    owner_id: str = Field(..., min_length=1, alias="ownerId")

    class Config:
        populate_by_name = True


class TagData(BaseModel):
    tags: List[str] = Field(..., min_length=1)

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, value: List[str]) -> List[str]:
        tags = [t.strip() for t in value if t and t.strip()]
        if not tags:
            raise ValueError("At least one non-empty tag is required")
        return tags


class StatusData(BaseModel):
    status: str = Field(..., min_length=1)


class StageData(BaseModel):
    stage_id: str = Field(..., min_length=1, alias="stageId")
    probability: Optional[int] = Field(None, ge=0, le=100)

    class Config:
        populate_by_name = True


class ExportData(BaseModel):
    fields: List[str] = Field(default_factory=list)
    include_relations: bool = False
    header_format: HeaderFormat = HeaderFormat.SNAKE_CASE


class BulkActionBase(BaseModel):
    entity_kind: EntityKind
    entity_ids: List[str] = Field(..., min_length=1)

    @field_validator("entity_ids")
    @classmethod
    def dedupe_ids(cls, value: List[str]) -> List[str]:
        # A set of ids, kept in selection order
        return list(dict.fromkeys(value))


class AssignAction(BulkActionBase):
    action: Literal["assign"]
    data: AssignData


class TagAction(BulkActionBase):
    action: Literal["tag"]
    data: TagData


class StatusAction(BulkActionBase):
    action: Literal["status"]
    data: StatusData


class StageAction(BulkActionBase):
    action: Literal["stage"]
    data: StageData


class DeleteAction(BulkActionBase):
    action: Literal["delete"]
    data: Optional[dict] = None


class ExportAction(BulkActionBase):
    action: Literal["export"]
    data: ExportData = Field(default_factory=ExportData)


BulkAction = Union[AssignAction, TagAction, StatusAction, StageAction, DeleteAction, ExportAction]

BulkActionRequest = Annotated[BulkAction, Field(discriminator="action")]

bulk_action_adapter = TypeAdapter(BulkActionRequest)


def parse_bulk_action(payload: dict) -> BulkActionBase:
    """Validate a raw bulk action payload into its typed request."""
    return bulk_action_adapter.validate_python(payload)


class BulkFailure(BaseModel):
    id: str
    message: str


class BulkActionResult(BaseModel):
    """Outcome of a bulk action."""
    action: str
    entity_kind: EntityKind
    affected: int = 0
    failed: List[BulkFailure] = Field(default_factory=list)
    csv: Optional[str] = None
    file_name: Optional[str] = None
