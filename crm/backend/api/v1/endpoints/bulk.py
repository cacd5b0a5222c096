"""
Bulk Operations API Endpoints.

Batch mutations over clients plus the background export lifecycle.
"""

from fastapi import APIRouter, Query
from fastapi.responses import Response

from crm.backend.core.cache import Cache
from crm.backend.core.config import get_app_config
from crm.backend.core.dependencies import CurrentSession, DbSession
from crm.backend.core.logging import get_logger
from crm.backend.models.enums import BulkOperationStatus, BulkOperationType
from crm.backend.schemas.base import ApiResponse, UUIDStr
from crm.backend.schemas.bulk import (
    BulkArchiveRequest,
    BulkArchiveResult,
    BulkAssignOwnerRequest,
    BulkAssignOwnerResult,
    BulkDeleteRequest,
    BulkDeleteResult,
    BulkExportRequest,
    BulkExportResult,
    BulkOperationIdRequest,
    BulkOperationList,
    BulkOperationResponse,
    BulkRestoreRequest,
    BulkRestoreResult,
    BulkUpdateResult,
    BulkUpdateStatusRequest,
    BulkUpdateTagsRequest,
)
from crm.backend.services.bulk import BulkService
from crm.backend.tasks.export import export_download_url, run_export

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/archive",
    response_model=ApiResponse[BulkArchiveResult],
    summary="Archive clients",
)
async def archive_clients(
    data: BulkArchiveRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkArchiveResult]:
    result = await BulkService.for_request(db, cache, session).archive(data)
    return ApiResponse(data=result, message=f"{result.archived} client(s) archived")


@router.post(
    "/restore",
    response_model=ApiResponse[BulkRestoreResult],
    summary="Restore archived clients",
)
async def restore_clients(
    data: BulkRestoreRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkRestoreResult]:
    result = await BulkService.for_request(db, cache, session).restore(data)
    return ApiResponse(data=result, message=f"{result.restored} client(s) restored")


@router.post(
    "/delete",
    response_model=ApiResponse[BulkDeleteResult],
    summary="Permanently delete archived clients",
)
async def delete_clients(
    data: BulkDeleteRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkDeleteResult]:
    result = await BulkService.for_request(db, cache, session).delete(data)
    return ApiResponse(data=result, message=f"{result.deleted} client(s) deleted")


@router.post(
    "/update-status",
    response_model=ApiResponse[BulkUpdateResult],
    summary="Change client status",
)
async def update_status(
    data: BulkUpdateStatusRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkUpdateResult]:
    result = await BulkService.for_request(db, cache, session).update_status(data)
    return ApiResponse(data=result, message=f"{result.updated} client(s) updated")


@router.post(
    "/update-tags",
    response_model=ApiResponse[BulkUpdateResult],
    summary="Add, remove or replace client tags",
)
async def update_tags(
    data: BulkUpdateTagsRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkUpdateResult]:
    result = await BulkService.for_request(db, cache, session).update_tags(data)
    return ApiResponse(data=result, message=f"Tags updated on {result.updated} client(s)")


@router.post(
    "/assign-owner",
    response_model=ApiResponse[BulkAssignOwnerResult],
    summary="Transfer clients to another owner",
)
async def assign_owner(
    data: BulkAssignOwnerRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkAssignOwnerResult]:
    result = await BulkService.for_request(db, cache, session).assign_owner(data)
    return ApiResponse(data=result, message=f"{result.assigned} client(s) reassigned")


@router.post(
    "/export",
    response_model=ApiResponse[BulkExportResult],
    status_code=202,
    summary="Export clients",
    description="Queue an export. Poll /bulk/status/{id} and download when completed.",
)
async def export_clients(
    data: BulkExportRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkExportResult]:
    service = BulkService.for_request(db, cache, session)
    result = await service.export(data)

    if get_app_config().features.background_export_enabled:
        from crm.backend.tasks.export import register_tasks

        # The worker reads the row, so it must be committed before dispatch
        await db.commit()
        await register_tasks()["process_client_export"].kiq(operation_id=result.operation_id)
        logger.info("Export dispatched", extra={"operation_id": result.operation_id})
        return ApiResponse(data=result, message="Export queued")

    await run_export(db, result.operation_id)
    operation = await service.get_status(result.operation_id)
    if operation.status == BulkOperationStatus.COMPLETED:
        result = result.model_copy(
            update={
                "status": operation.status,
                "download_url": export_download_url(result.operation_id),
            }
        )
    else:
        result = result.model_copy(update={"status": operation.status})
    return ApiResponse(data=result, message=f"Export {operation.status}")


@router.get(
    "/exports/{operation_id}/download",
    summary="Download a completed export",
    responses={200: {"content": {"text/csv": {}, "application/json": {}}}},
)
async def download_export(
    operation_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> Response:
    content, content_type, filename = await BulkService.for_request(
        db, cache, session
    ).get_export_file(operation_id)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/status/{operation_id}",
    response_model=ApiResponse[BulkOperationResponse],
    summary="Get bulk operation status",
)
async def get_operation_status(
    operation_id: UUIDStr,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkOperationResponse]:
    operation = await BulkService.for_request(db, cache, session).get_status(operation_id)
    return ApiResponse(data=operation)


@router.get(
    "/operations",
    response_model=ApiResponse[BulkOperationList],
    summary="List bulk operations",
)
async def list_operations(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    operation_type: BulkOperationType | None = Query(default=None),
    status: BulkOperationStatus | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> ApiResponse[BulkOperationList]:
    operations = await BulkService.for_request(db, cache, session).list_operations(
        operation_type=operation_type,
        status=status,
        limit=limit,
        offset=offset,
    )
    return ApiResponse(data=operations)


@router.post(
    "/cancel",
    response_model=ApiResponse[BulkOperationResponse],
    summary="Cancel a pending or running operation",
)
async def cancel_operation(
    data: BulkOperationIdRequest,
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[BulkOperationResponse]:
    operation = await BulkService.for_request(db, cache, session).cancel(data.operation_id)
    return ApiResponse(data=operation, message="Operation cancelled")
