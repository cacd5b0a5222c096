"""
Tagging API Endpoints.

Tag categories, tags, client tag assignments, bulk tagging and tag
usage statistics.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from crm.backend.core.cache import Cache
from crm.backend.core.dependencies import CurrentSession, DbSession
from crm.backend.schemas.base import ApiResponse, Page, UUIDStr
from crm.backend.schemas.tagging import (
    BulkTagOperationRequest,
    BulkTagResult,
    CategoryDeleteResult,
    ReplaceClientTagsRequest,
    TagAssignmentResult,
    TagCategoryCreate,
    TagCategoryResponse,
    TagCategoryUpdate,
    TagCreate,
    TagDeleteResult,
    TagIdsRequest,
    TagListParams,
    TagResponse,
    TagsOverviewStatistics,
    TagUpdate,
    TagUsageStatistics,
)
from crm.backend.services.tagging import TaggingService

router = APIRouter()


# =============================================================================
# Categories
# =============================================================================


@router.get(
    "/categories",
    response_model=ApiResponse[list[TagCategoryResponse]],
    summary="List tag categories with their tags",
)
async def get_categories(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    include_inactive: bool = Query(default=False),
) -> ApiResponse[list[TagCategoryResponse]]:
    categories = await TaggingService.for_request(db, cache, session).get_categories(include_inactive)
    return ApiResponse(data=categories)


@router.post(
    "/categories",
    response_model=ApiResponse[TagCategoryResponse],
    status_code=201,
    summary="Create a tag category",
)
async def create_category(
    data: TagCategoryCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagCategoryResponse]:
    category = await TaggingService.for_request(db, cache, session).create_category(data)
    return ApiResponse(data=category, message="Category created")


@router.patch(
    "/categories/{category_id}",
    response_model=ApiResponse[TagCategoryResponse],
    summary="Update a tag category",
)
async def update_category(
    category_id: UUIDStr,
    data: TagCategoryUpdate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagCategoryResponse]:
    category = await TaggingService.for_request(db, cache, session).update_category(category_id, data)
    return ApiResponse(data=category, message="Category updated")


@router.delete(
    "/categories/{category_id}",
    response_model=ApiResponse[CategoryDeleteResult],
    summary="Delete a tag category",
)
async def delete_category(
    category_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    reassign_to_category_id: UUIDStr | None = Query(default=None),
) -> ApiResponse[CategoryDeleteResult]:
    result = await TaggingService.for_request(db, cache, session).delete_category(
        category_id, reassign_to_category_id
    )
    return ApiResponse(data=result, message=result.message)


# =============================================================================
# Tags
# =============================================================================


@router.get(
    "/tags",
    response_model=ApiResponse[Page[TagResponse]],
    summary="List tags",
)
async def get_tags(
    params: Annotated[TagListParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[Page[TagResponse]]:
    result = await TaggingService.for_request(db, cache, session).get_tags(params)
    return ApiResponse(data=result.to_page(TagResponse))


@router.post(
    "/tags",
    response_model=ApiResponse[TagResponse],
    status_code=201,
    summary="Create a tag",
)
async def create_tag(
    data: TagCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagResponse]:
    tag = await TaggingService.for_request(db, cache, session).create_tag(data)
    return ApiResponse(data=tag, message="Tag created")


@router.get(
    "/tags/{tag_id}",
    response_model=ApiResponse[TagResponse],
    summary="Get a tag",
)
async def get_tag(
    tag_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    include_client_count: bool = Query(default=False),
) -> ApiResponse[TagResponse]:
    tag = await TaggingService.for_request(db, cache, session).get_tag(tag_id, include_client_count)
    return ApiResponse(data=tag)


@router.patch(
    "/tags/{tag_id}",
    response_model=ApiResponse[TagResponse],
    summary="Update a tag",
)
async def update_tag(
    tag_id: UUIDStr,
    data: TagUpdate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagResponse]:
    tag = await TaggingService.for_request(db, cache, session).update_tag(tag_id, data)
    return ApiResponse(data=tag, message="Tag updated")


@router.post(
    "/tags/{tag_id}/archive",
    response_model=ApiResponse[TagResponse],
    summary="Archive a tag",
)
async def archive_tag(
    tag_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagResponse]:
    tag = await TaggingService.for_request(db, cache, session).archive_tag(tag_id)
    return ApiResponse(data=tag, message="Tag archived")


@router.post(
    "/tags/{tag_id}/restore",
    response_model=ApiResponse[TagResponse],
    summary="Restore an archived tag",
)
async def restore_tag(
    tag_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagResponse]:
    tag = await TaggingService.for_request(db, cache, session).restore_tag(tag_id)
    return ApiResponse(data=tag, message="Tag restored")


@router.delete(
    "/tags/{tag_id}",
    response_model=ApiResponse[TagDeleteResult],
    summary="Archive or permanently delete a tag",
)
async def delete_tag(
    tag_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    hard_delete: bool = Query(default=False),
) -> ApiResponse[TagDeleteResult]:
    result = await TaggingService.for_request(db, cache, session).delete_tag(tag_id, hard_delete)
    return ApiResponse(data=result, message=result.message)


# =============================================================================
# Client tags
# =============================================================================


@router.get(
    "/clients/{client_id}/tags",
    response_model=ApiResponse[list[TagResponse]],
    summary="Tags assigned to a client",
)
async def get_client_tags(
    client_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[list[TagResponse]]:
    tags = await TaggingService.for_request(db, cache, session).get_client_tags(client_id)
    return ApiResponse(data=tags)


@router.post(
    "/clients/{client_id}/tags",
    response_model=ApiResponse[TagAssignmentResult],
    summary="Assign tags to a client",
)
async def assign_tags(
    client_id: UUIDStr,
    data: TagIdsRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagAssignmentResult]:
    result = await TaggingService.for_request(db, cache, session).assign_tags(client_id, data.tag_ids)
    return ApiResponse(data=result, message=result.message)


@router.post(
    "/clients/{client_id}/tags/remove",
    response_model=ApiResponse[TagAssignmentResult],
    summary="Remove tags from a client",
)
async def remove_tags(
    client_id: UUIDStr,
    data: TagIdsRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagAssignmentResult]:
    result = await TaggingService.for_request(db, cache, session).remove_tags(client_id, data.tag_ids)
    return ApiResponse(data=result, message=result.message)


@router.put(
    "/clients/{client_id}/tags",
    response_model=ApiResponse[TagAssignmentResult],
    summary="Replace all tags of a client",
)
async def replace_client_tags(
    client_id: UUIDStr,
    data: ReplaceClientTagsRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TagAssignmentResult]:
    result = await TaggingService.for_request(db, cache, session).replace_client_tags(
        client_id, data.tag_ids
    )
    return ApiResponse(data=result, message=result.message)


@router.post(
    "/bulk",
    response_model=ApiResponse[BulkTagResult],
    summary="Add, remove or replace tags on many clients",
)
async def bulk_tag_operation(
    data: BulkTagOperationRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkTagResult]:
    result = await TaggingService.for_request(db, cache, session).bulk_tag_operation(data)
    return ApiResponse(data=result, message=result.message)


@router.get(
    "/statistics",
    response_model=ApiResponse[TagUsageStatistics | TagsOverviewStatistics],
    summary="Tag usage statistics",
)
async def get_tag_statistics(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    tag_id: UUIDStr | None = Query(default=None),
) -> ApiResponse[TagUsageStatistics | TagsOverviewStatistics]:
    stats = await TaggingService.for_request(db, cache, session).get_tag_statistics(tag_id)
    return ApiResponse(data=stats)
