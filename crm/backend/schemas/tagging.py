"""
Tagging Schemas.

Pydantic schemas for tag categories, tags, client tag assignments,
and bulk tag operations.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crm.backend.models.enums import SelectionMode
from crm.backend.schemas.base import UUIDStr, reject_null

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class TagCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Segment"])
    description: str | None = Field(default=None, max_length=500)
    selection_mode: SelectionMode = SelectionMode.MULTIPLE
    display_order: int = Field(default=0, ge=0)
    is_active: bool = True


class TagCategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    selection_mode: SelectionMode | None = None
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("name", "selection_mode", "display_order", "is_active")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return reject_null(value)


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["VIP"])
    category_id: UUIDStr | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR, examples=["#3B82F6"])
    icon: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    display_order: int = Field(default=0, ge=0)


class TagUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    category_id: UUIDStr | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    icon: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("name", "color", "display_order", "is_active")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return reject_null(value)


class TagListParams(BaseModel):
    category_id: UUIDStr | None = None
    include_inactive: bool = False
    include_archived: bool = False
    search: str | None = Field(default=None, max_length=100)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


class TagIdsRequest(BaseModel):
    tag_ids: list[UUIDStr] = Field(..., min_length=1, max_length=50)


class ReplaceClientTagsRequest(BaseModel):
    tag_ids: list[UUIDStr] = Field(default_factory=list, max_length=100)


class BulkTagOperationRequest(BaseModel):
    operation: Literal["ADD", "REMOVE", "REPLACE"]
    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=1000)
    tag_ids: list[UUIDStr] = Field(..., min_length=1, max_length=50)
    replace_tag_id: UUIDStr | None = Field(
        default=None,
        description="Tag removed from each client before tag_ids are added (REPLACE only)",
    )

    @model_validator(mode="after")
    def _replace_needs_source(self) -> "BulkTagOperationRequest":
        if self.operation == "REPLACE" and self.replace_tag_id is None:
            raise ValueError("replace_tag_id is required for REPLACE")
        return self


class TagResponse(BaseModel):
    id: str
    category_id: str | None
    name: str
    slug: str
    color: str
    icon: str | None
    description: str | None
    display_order: int
    is_system: bool
    is_active: bool
    is_archived: bool
    created_at: datetime
    updated_at: datetime
    client_count: int | None = None

    model_config = ConfigDict(from_attributes=True)


class TagCategoryResponse(BaseModel):
    id: str
    name: str
    description: str | None
    selection_mode: SelectionMode
    display_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    tag_count: int | None = None
    tags: list[TagResponse] | None = None

    model_config = ConfigDict(from_attributes=True)


class CategoryDeleteResult(BaseModel):
    success: bool = True
    reassigned_tags: int
    message: str


class TagDeleteResult(BaseModel):
    success: bool = True
    archived: bool
    message: str


class TagError(BaseModel):
    tag_id: str
    error: str


class TagAssignmentResult(BaseModel):
    success: bool
    client_id: str
    assigned_tags: list[str] = Field(default_factory=list)
    removed_tags: list[str] = Field(default_factory=list)
    skipped_tags: list[str] = Field(default_factory=list)
    errors: list[TagError] = Field(default_factory=list)
    message: str


class BulkTagClientResult(BaseModel):
    client_id: str
    success: bool
    error: str | None = None


class BulkTagResult(BaseModel):
    success: bool
    operation: Literal["ADD", "REMOVE", "REPLACE"]
    processed: int
    failed: int
    results: list[BulkTagClientResult]
    message: str


class TopTag(BaseModel):
    tag_id: str
    name: str
    color: str
    client_count: int


class TagsOverviewStatistics(BaseModel):
    total_tags: int
    active_tags: int
    archived_tags: int
    total_categories: int
    total_assignments: int
    top_tags: list[TopTag]


class TagUsageStatistics(BaseModel):
    tag: TagResponse
    client_count: int
    assignments_today: int
    assignments_this_week: int
    assignments_this_month: int
    trend: Literal["up", "down", "stable"]
