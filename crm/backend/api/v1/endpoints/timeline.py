"""
Timeline API Endpoints.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Query

from crm.backend.core.cache import Cache
from crm.backend.core.dependencies import CurrentSession, DbSession
from crm.backend.schemas.base import ApiResponse, Page, UUIDStr
from crm.backend.schemas.timeline import (
    TimelineBulkCreate,
    TimelineBulkCreateResult,
    TimelineEventCreate,
    TimelineEventResponse,
    TimelineEventUpdate,
    TimelineListParams,
    TimelineStats,
)
from crm.backend.services.timeline import TimelineService

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[TimelineEventResponse],
    status_code=201,
    summary="Add a timeline event",
)
async def create_event(
    data: TimelineEventCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TimelineEventResponse]:
    event = await TimelineService.for_request(db, cache, session).create(data)
    return ApiResponse(data=event, message="Timeline event created")


@router.get(
    "",
    response_model=ApiResponse[Page[TimelineEventResponse]],
    summary="List a client's timeline",
)
async def list_events(
    params: Annotated[TimelineListParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[Page[TimelineEventResponse]]:
    result = await TimelineService.for_request(db, cache, session).list_events(params)
    return ApiResponse(data=result.to_page(TimelineEventResponse))


@router.post(
    "/bulk",
    response_model=ApiResponse[TimelineBulkCreateResult],
    status_code=201,
    summary="Add several events to a client's timeline",
)
async def bulk_create_events(
    data: TimelineBulkCreate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TimelineBulkCreateResult]:
    result = await TimelineService.for_request(db, cache, session).bulk_create(data)
    return ApiResponse(data=result, message=f"{result.created} event(s) created")


@router.get(
    "/stats",
    response_model=ApiResponse[TimelineStats],
    summary="Timeline statistics for a client",
)
async def get_timeline_stats(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    client_id: UUIDStr = Query(...),
    period: Literal["week", "month", "quarter", "year", "all"] = Query(default="month"),
) -> ApiResponse[TimelineStats]:
    stats = await TimelineService.for_request(db, cache, session).get_stats(client_id, period)
    return ApiResponse(data=stats)


@router.get(
    "/{event_id}",
    response_model=ApiResponse[TimelineEventResponse],
    summary="Get a timeline event",
)
async def get_event(
    event_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TimelineEventResponse]:
    event = await TimelineService.for_request(db, cache, session).get(event_id)
    return ApiResponse(data=event)


@router.patch(
    "/{event_id}",
    response_model=ApiResponse[TimelineEventResponse],
    summary="Update a timeline event",
)
async def update_event(
    event_id: UUIDStr,
    data: TimelineEventUpdate,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TimelineEventResponse]:
    event = await TimelineService.for_request(db, cache, session).update(event_id, data)
    return ApiResponse(data=event, message="Timeline event updated")


@router.delete(
    "/{event_id}",
    response_model=ApiResponse[None],
    summary="Delete a timeline event",
)
async def delete_event(
    event_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[None]:
    await TimelineService.for_request(db, cache, session).delete(event_id)
    return ApiResponse(message="Timeline event deleted")
