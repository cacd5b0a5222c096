"""
Bulk Operation Schemas.

Request validation and result shapes for bulk client operations.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from crm.backend.models.enums import (
    BulkOperationStatus,
    BulkOperationType,
    ClientStatus,
    ExportFormat,
)
from crm.backend.schemas.base import ClientError, UUIDStr

TagName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class BulkArchiveRequest(BaseModel):
    """Archive up to 100 clients."""

    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class BulkRestoreRequest(BaseModel):
    """Restore up to 100 archived clients."""

    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=100)


class BulkDeleteRequest(BaseModel):
    """Permanently delete up to 50 archived clients."""

    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=50)
    confirm_deletion: Literal[True] = Field(
        ...,
        description="Must be true to confirm permanent deletion",
    )


class BulkUpdateStatusRequest(BaseModel):
    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=100)
    status: ClientStatus
    reason: str | None = Field(default=None, max_length=500)


class BulkUpdateTagsRequest(BaseModel):
    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=100)
    operation: Literal["add", "remove", "replace"]
    tags: list[TagName] = Field(..., min_length=1, max_length=50)


class BulkAssignOwnerRequest(BaseModel):
    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=100)
    new_owner_id: UUIDStr
    transfer_notes: bool = True
    transfer_documents: bool = True


ExportField = Literal[
    "id",
    "display_name",
    "client_type",
    "status",
    "email",
    "vat_number",
    "vat_status",
    "risk_level",
    "risk_score",
    "tags",
    "owner_id",
    "created_at",
    "updated_at",
    "archived_at",
]


class BulkExportRequest(BaseModel):
    """Export up to 1000 clients in the background."""

    client_ids: list[UUIDStr] = Field(..., min_length=1, max_length=1000)
    format: ExportFormat = ExportFormat.CSV
    fields: list[ExportField] | None = Field(
        default=None,
        description="Client fields to include; all exportable fields when omitted",
    )
    include_contacts: bool = False
    include_timeline: bool = False
    include_documents: bool = False


class BulkOperationIdRequest(BaseModel):
    operation_id: UUIDStr


class BulkResult(BaseModel):
    """Common shape of synchronous batch results."""

    processed: int = Field(description="Number of clients requested")
    failed: int = 0
    errors: list[ClientError] = Field(default_factory=list)


class BulkArchiveResult(BulkResult):
    archived: int = 0


class BulkRestoreResult(BulkResult):
    restored: int = 0


class BulkDeleteResult(BulkResult):
    deleted: int = 0


class BulkUpdateResult(BulkResult):
    updated: int = 0


class BulkAssignOwnerResult(BulkResult):
    assigned: int = 0


class BulkExportResult(BaseModel):
    operation_id: str
    status: BulkOperationStatus
    client_count: int
    format: ExportFormat
    download_url: str | None = None
    expires_at: datetime | None = None


class BulkOperationResponse(BaseModel):
    """Tracking row of a bulk operation, as returned to pollers."""

    id: str
    operation_type: BulkOperationType
    status: BulkOperationStatus
    total_items: int
    processed_items: int
    success_count: int
    failure_count: int
    progress: int
    errors: list[dict[str, Any]]
    parameters: dict[str, Any]
    result: dict[str, Any] | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BulkOperationList(BaseModel):
    operations: list[BulkOperationResponse]
    total: int
    limit: int
    offset: int
