"""
Timeline Schemas.

Pydantic schemas for client timeline events.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crm.backend.models.enums import EventType, Importance
from crm.backend.schemas.base import IndexedError, UUIDStr, reject_null


class TimelineEventFields(BaseModel):
    """Fields shared by single and bulk event creation."""

    event_type: EventType
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    importance: Importance = Importance.NORMAL
    metadata: dict[str, Any] | None = None
    scheduled_at: datetime | None = None
    due_at: datetime | None = None


class TimelineEventCreate(TimelineEventFields):
    client_id: UUIDStr
    related_contact_id: UUIDStr | None = None
    related_document_id: UUIDStr | None = None


class TimelineEventUpdate(BaseModel):
    """Only fields that are sent are changed; explicit nulls clear dates."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    importance: Importance | None = None
    metadata: dict[str, Any] | None = None
    scheduled_at: datetime | None = None
    due_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("title", "importance")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return reject_null(value)


class TimelineListParams(BaseModel):
    client_id: UUIDStr
    event_types: list[EventType] = Field(default_factory=list)
    importance: list[Importance] = Field(default_factory=list)
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = Field(default=None, min_length=2, max_length=100)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_order: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _check_range(self) -> "TimelineListParams":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class TimelineBulkCreate(BaseModel):
    client_id: UUIDStr
    events: list[TimelineEventFields] = Field(..., min_length=1, max_length=50)


class TimelineEventResponse(BaseModel):
    id: str
    client_id: str
    user_id: str | None
    event_type: EventType
    title: str
    description: str | None
    importance: Importance
    metadata: dict[str, Any] | None = Field(validation_alias="event_metadata")
    scheduled_at: datetime | None
    due_at: datetime | None
    completed_at: datetime | None
    related_contact_id: str | None
    related_document_id: str | None
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TimelineBulkCreateResult(BaseModel):
    processed: int
    created: int
    failed: int
    events: list[TimelineEventResponse]
    errors: list[IndexedError]


class TimelineStats(BaseModel):
    client_id: str
    period: str
    total_events: int
    events_by_type: dict[str, int]
    events_by_importance: dict[str, int]
    recent_activity: int = Field(description="Events in the last 7 days")
    last_event_at: datetime | None
