"""
Client Export Tasks.

Background side of ``BulkService.export``: renders the requested clients
and stores the file on the ``BulkOperation`` row for download.

Usage:
    from crm.backend.tasks.export import register_tasks

    tasks = register_tasks()
    await tasks["process_client_export"].kiq(operation_id=operation.id)

Task functions can be awaited directly when no broker is available.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import BadRequestError
from crm.backend.core.logging import get_logger
from crm.backend.core.utils import utc_now
from crm.backend.models.enums import BulkOperationStatus, ExportFormat
from crm.backend.repositories.bulk_operation import BulkOperationRepository
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.contact import ContactRepository
from crm.backend.repositories.timeline_event import TimelineEventRepository
from crm.backend.services.export import DEFAULT_FIELDS, ExportOptions, render_clients

logger = get_logger(__name__)


def export_download_url(operation_id: str) -> str:
    prefix = get_app_config().application.api_prefix
    return f"{prefix}/bulk/exports/{operation_id}/download"


async def run_export(session: AsyncSession, operation_id: str) -> dict[str, Any]:
    """
    Render one pending export inside the given session.

    The caller owns the transaction. Operations cancelled before this
    runs are left untouched.

    Returns:
        Dict with the final operation status
    """
    operations = BulkOperationRepository(session)
    operation = await operations.get_by_id_or_none(operation_id)
    if operation is None:
        logger.warning("Export operation not found", extra={"operation_id": operation_id})
        return {"operation_id": operation_id, "status": "missing"}

    if operation.status != BulkOperationStatus.PENDING:
        logger.info(
            "Export skipped",
            extra={"operation_id": operation_id, "status": operation.status},
        )
        return {"operation_id": operation_id, "status": operation.status}

    await operations.apply(
        operation,
        status=BulkOperationStatus.PROCESSING.value,
        started_at=utc_now(),
    )

    params = operation.parameters or {}
    client_ids = [str(i) for i in params.get("client_ids", [])]
    options = ExportOptions(
        format=ExportFormat(params.get("format", ExportFormat.CSV)),
        fields=params.get("fields") or list(DEFAULT_FIELDS),
        include_contacts=bool(params.get("include_contacts")),
        include_timeline=bool(params.get("include_timeline")),
        include_documents=bool(params.get("include_documents")),
    )

    clients = await ClientRepository(session).list_for_organization(
        operation.organization_id, client_ids
    )
    found = {client.id for client in clients}
    errors = [
        {"client_id": client_id, "error": "Client not found"}
        for client_id in client_ids
        if client_id not in found
    ]

    contacts = None
    if options.include_contacts:
        contacts = await ContactRepository(session).list_all_for_clients(list(found))
    events = None
    if options.include_timeline or options.include_documents:
        events = await TimelineEventRepository(session).list_all_for_clients(list(found))

    try:
        rendered = render_clients(
            clients,
            options,
            contacts=contacts,
            events=events,
            stamp=utc_now().strftime("%Y%m%d%H%M%S"),
        )
    except BadRequestError as e:
        logger.warning(
            "Export failed",
            extra={"operation_id": operation_id, "format": options.format, "error": e.message},
        )
        await operations.apply(
            operation,
            status=BulkOperationStatus.FAILED.value,
            processed_items=len(client_ids),
            failure_count=len(client_ids),
            errors=[{"error": e.message}],
            completed_at=utc_now(),
        )
        return {"operation_id": operation_id, "status": BulkOperationStatus.FAILED.value}

    await operations.apply(
        operation,
        status=BulkOperationStatus.COMPLETED.value,
        processed_items=len(client_ids),
        success_count=rendered.row_count,
        failure_count=len(errors),
        errors=errors,
        output=rendered.content,
        result={
            "filename": rendered.filename,
            "content_type": rendered.content_type,
            "row_count": rendered.row_count,
            "size_bytes": len(rendered.content.encode("utf-8")),
            "download_url": export_download_url(operation.id),
        },
        completed_at=utc_now(),
    )

    logger.info(
        "Export completed",
        extra={
            "operation_id": operation_id,
            "format": options.format,
            "rows": rendered.row_count,
            "missing": len(errors),
        },
    )
    return {"operation_id": operation_id, "status": BulkOperationStatus.COMPLETED.value}


async def process_client_export(operation_id: str) -> dict[str, Any]:
    """Worker entry point: run one export in its own transaction."""
    from crm.backend.core.database import get_session_factory

    logger.info("Processing client export", extra={"operation_id": operation_id})
    async with get_session_factory()() as session:
        try:
            outcome = await run_export(session, operation_id)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return outcome


async def purge_expired_exports() -> dict[str, Any]:
    """Drop rendered files of exports whose download window has passed."""
    from crm.backend.core.database import get_session_factory

    async with get_session_factory()() as session:
        cleared = await BulkOperationRepository(session).clear_expired_output(utc_now())
        await session.commit()

    logger.info("Expired exports purged", extra={"cleared": cleared})
    return {"cleared": cleared, "completed_at": utc_now().isoformat()}


_registered: dict[str, Any] | None = None


def register_tasks() -> dict[str, Any]:
    """
    Register export tasks with the Taskiq broker, once per process.

    Returns:
        Dict mapping task names to registered task objects
    """
    global _registered
    if _registered is not None:
        return _registered

    from crm.backend.tasks.broker import get_broker

    broker = get_broker()
    timeout = get_app_config().application.timeouts.background

    registered = {}
    for name, func in (
        ("process_client_export", process_client_export),
        ("purge_expired_exports", purge_expired_exports),
    ):
        config = TASK_CONFIG[name]
        labels = {}
        if config.get("schedule"):
            labels["schedule"] = [{"cron": config["schedule"]}]
        registered[name] = broker.task(
            task_name=name,
            retry_on_error=config["retry_on_error"],
            max_retries=config["max_retries"],
            timeout=timeout,
            **labels,
        )(func)

    logger.info(
        "Tasks registered with broker",
        extra={"task_count": len(registered), "tasks": list(registered.keys())},
    )
    _registered = registered
    return registered


TASK_CONFIG = {
    "process_client_export": {
        "retry_on_error": True,
        "max_retries": 2,
        "description": "Render a bulk client export and store it for download",
    },
    "purge_expired_exports": {
        "retry_on_error": False,
        "max_retries": 0,
        "schedule": "15 * * * *",
        "description": "Drop rendered export files past their expiry",
    },
}
