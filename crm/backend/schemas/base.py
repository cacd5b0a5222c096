"""
Base Schemas.

Standard API response envelopes and shared result shapes.
"""

from datetime import datetime
from typing import Annotated, Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, WithJsonSchema

from crm.backend.core.utils import utc_now

DataT = TypeVar("DataT")


def _uuid_string(value: Any) -> str:
    try:
        return str(UUID(str(value)))
    except ValueError as e:
        raise ValueError("must be a valid UUID") from e


def reject_null(value: Any) -> Any:
    """Field validator body for partial updates of columns that cannot be empty."""
    if value is None:
        raise ValueError("must not be null")
    return value


# Canonical lowercase UUID string, validated at the API boundary
UUIDStr = Annotated[
    str,
    BeforeValidator(_uuid_string),
    WithJsonSchema({"type": "string", "format": "uuid"}),
]


class ResponseMetadata(BaseModel):
    """Metadata included in all API responses."""

    timestamp: datetime = Field(default_factory=utc_now)
    request_id: str | None = None


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class ApiResponse(BaseModel, Generic[DataT]):
    """
    Standard API response envelope.

    All API responses use this structure for consistency.
    """

    success: bool = True
    data: DataT | None = None
    message: str | None = None
    error: ErrorDetail | None = None
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    data: None = None
    error: ErrorDetail
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class Page(BaseModel, Generic[DataT]):
    """One page of a list query."""

    items: list[DataT]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


class ClientError(BaseModel):
    """Per-client failure inside a batch operation."""

    client_id: str
    error: str


class IndexedError(BaseModel):
    """Per-item failure inside a bulk create, keyed by input position."""

    index: int
    error: str
