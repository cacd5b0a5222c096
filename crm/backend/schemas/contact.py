"""
Contact Schemas.

Pydantic schemas for contact API request/response validation.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from crm.backend.models.enums import ContactStatus, ContactType
from crm.backend.schemas.base import IndexedError, UUIDStr, reject_null


class ContactFields(BaseModel):
    """Fields shared by single and bulk contact creation."""

    first_name: str = Field(..., min_length=2, max_length=100, examples=["Anna"])
    last_name: str = Field(..., min_length=2, max_length=100, examples=["Nowak"])
    email: EmailStr | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    mobile_phone: str | None = Field(default=None, max_length=50)
    position: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    contact_type: ContactType = ContactType.PRIMARY
    is_primary: bool = False
    notes: str | None = Field(default=None, max_length=2000)
    custom_fields: dict[str, Any] | None = None


class ContactCreate(ContactFields):
    """Schema for creating a contact."""

    client_id: UUIDStr


class ContactUpdate(BaseModel):
    """Schema for updating a contact. Only fields that are sent are changed."""

    first_name: str | None = Field(default=None, min_length=2, max_length=100)
    last_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    mobile_phone: str | None = Field(default=None, max_length=50)
    position: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    contact_type: ContactType | None = None
    is_primary: bool | None = None
    status: Literal["active", "inactive"] | None = None
    notes: str | None = Field(default=None, max_length=2000)
    custom_fields: dict[str, Any] | None = None

    @field_validator("first_name", "last_name", "contact_type", "is_primary", "status")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return reject_null(value)


class ContactListParams(BaseModel):
    """Query parameters for listing a client's contacts."""

    client_id: UUIDStr
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    contact_type: ContactType | None = None
    status: ContactStatus | None = None
    search: str | None = Field(default=None, max_length=100)
    sort_by: Literal["full_name", "created_at", "updated_at", "contact_type"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class ContactSearchParams(BaseModel):
    query: str = Field(..., min_length=2, max_length=100)
    client_id: UUIDStr | None = None
    contact_type: ContactType | None = None
    limit: int = Field(default=10, ge=1, le=50)


class SetPrimaryRequest(BaseModel):
    contact_type: ContactType | None = Field(
        default=None,
        description="Become primary for this type; the contact's own type when omitted",
    )


class ContactBulkCreate(BaseModel):
    client_id: UUIDStr
    contacts: list[ContactFields] = Field(..., min_length=1, max_length=50)


class ContactResponse(BaseModel):
    """Schema for a contact in API responses."""

    id: str
    client_id: str
    first_name: str
    last_name: str
    full_name: str
    email: str | None
    phone: str | None
    mobile_phone: str | None
    position: str | None
    department: str | None
    contact_type: ContactType
    is_primary: bool
    status: ContactStatus
    notes: str | None
    custom_fields: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime
    archived_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ContactDeleteResult(BaseModel):
    success: bool = True
    archived: bool
    message: str


class SetPrimaryResult(BaseModel):
    contact: ContactResponse
    previous_primary: ContactResponse | None = None


class ContactBulkCreateResult(BaseModel):
    processed: int
    created: int
    failed: int
    contacts: list[ContactResponse]
    errors: list[IndexedError]


class ContactSearchResult(BaseModel):
    contacts: list[ContactResponse]
    total: int
