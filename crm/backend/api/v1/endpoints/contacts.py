"""
Contacts API Endpoints.

CRUD, soft delete and primary-contact management for client contacts.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from crm.backend.core.cache import Cache
from crm.backend.core.dependencies import CurrentSession, DbSession
from crm.backend.schemas.base import ApiResponse, Page, UUIDStr
from crm.backend.schemas.contact import (
    ContactBulkCreate,
    ContactBulkCreateResult,
    ContactCreate,
    ContactDeleteResult,
    ContactListParams,
    ContactResponse,
    ContactSearchParams,
    ContactSearchResult,
    ContactUpdate,
    SetPrimaryRequest,
    SetPrimaryResult,
)
from crm.backend.services.contact import ContactService

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[ContactResponse],
    status_code=201,
    summary="Create a contact",
)
async def create_contact(
    data: ContactCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactResponse]:
    contact = await ContactService.for_request(db, cache, session).create(data)
    return ApiResponse(data=contact, message="Contact created")


@router.get(
    "",
    response_model=ApiResponse[Page[ContactResponse]],
    summary="List contacts of a client",
)
async def list_contacts(
    params: Annotated[ContactListParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[Page[ContactResponse]]:
    result = await ContactService.for_request(db, cache, session).list_contacts(params)
    return ApiResponse(data=result.to_page(ContactResponse))


@router.get(
    "/search",
    response_model=ApiResponse[ContactSearchResult],
    summary="Search contacts across clients",
)
async def search_contacts(
    params: Annotated[ContactSearchParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactSearchResult]:
    result = await ContactService.for_request(db, cache, session).search(params)
    return ApiResponse(data=result)


@router.post(
    "/bulk",
    response_model=ApiResponse[ContactBulkCreateResult],
    status_code=201,
    summary="Create several contacts for a client",
)
async def bulk_create_contacts(
    data: ContactBulkCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactBulkCreateResult]:
    result = await ContactService.for_request(db, cache, session).bulk_create(data)
    return ApiResponse(data=result, message=f"{result.created} contact(s) created")


@router.get(
    "/{contact_id}",
    response_model=ApiResponse[ContactResponse],
    summary="Get a contact",
)
async def get_contact(
    contact_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactResponse]:
    contact = await ContactService.for_request(db, cache, session).get(contact_id)
    return ApiResponse(data=contact)


@router.patch(
    "/{contact_id}",
    response_model=ApiResponse[ContactResponse],
    summary="Update a contact",
)
async def update_contact(
    contact_id: UUIDStr,
    data: ContactUpdate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactResponse]:
    contact = await ContactService.for_request(db, cache, session).update(contact_id, data)
    return ApiResponse(data=contact, message="Contact updated")


@router.delete(
    "/{contact_id}",
    response_model=ApiResponse[ContactDeleteResult],
    summary="Archive or permanently delete a contact",
)
async def delete_contact(
    contact_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    permanent: bool = Query(default=False, description="Delete instead of archiving"),
) -> ApiResponse[ContactDeleteResult]:
    result = await ContactService.for_request(db, cache, session).delete(contact_id, permanent)
    return ApiResponse(data=result, message=result.message)


@router.post(
    "/{contact_id}/restore",
    response_model=ApiResponse[ContactResponse],
    summary="Restore an archived contact",
)
async def restore_contact(
    contact_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ContactResponse]:
    contact = await ContactService.for_request(db, cache, session).restore(contact_id)
    return ApiResponse(data=contact, message="Contact restored")


@router.post(
    "/{contact_id}/set-primary",
    response_model=ApiResponse[SetPrimaryResult],
    summary="Make a contact the primary one for its type",
)
async def set_primary_contact(
    contact_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    data: SetPrimaryRequest | None = None,
) -> ApiResponse[SetPrimaryResult]:
    contact_type = data.contact_type.value if data and data.contact_type else None
    result = await ContactService.for_request(db, cache, session).set_primary(contact_id, contact_type)
    return ApiResponse(data=result, message="Primary contact set")
