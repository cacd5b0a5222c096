"""
Bulk Client Service.

Batch mutations over many clients at once (archive, restore, delete,
status, tags, owner) plus the bookkeeping for background exports.

Each batch checks every client individually and records failures as
``{client_id, error}`` instead of aborting; the remaining clients are
written in one flush.
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import BadRequestError, NotFoundError
from crm.backend.core.security import SessionContext
from crm.backend.core.utils import utc_now
from crm.backend.models.bulk_operation import BulkOperation
from crm.backend.models.client import Client
from crm.backend.models.enums import BulkOperationStatus, BulkOperationType
from crm.backend.repositories.bulk_operation import BulkOperationRepository
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.user import UserRepository
from crm.backend.schemas.base import ClientError
from crm.backend.schemas.bulk import (
    BulkArchiveRequest,
    BulkArchiveResult,
    BulkAssignOwnerRequest,
    BulkAssignOwnerResult,
    BulkDeleteRequest,
    BulkDeleteResult,
    BulkExportRequest,
    BulkExportResult,
    BulkOperationList,
    BulkOperationResponse,
    BulkRestoreRequest,
    BulkRestoreResult,
    BulkUpdateStatusRequest,
    BulkUpdateTagsRequest,
    BulkUpdateResult,
)
from crm.backend.services.audit import AuditEvent, AuditLogger
from crm.backend.services.base import CrmService

CLIENT_NOT_FOUND = "Client not found"

CANCELLABLE_STATUSES = {BulkOperationStatus.PENDING, BulkOperationStatus.PROCESSING}

# Returns an error message when the client must be skipped, None otherwise
ClientCheck = Callable[[Client], str | None]


def unique_ids(ids: list[str]) -> list[str]:
    """Drop duplicate IDs while keeping first-seen order."""
    return list(dict.fromkeys(ids))


class BulkService(CrmService):
    """Bulk operations over the caller's accessible clients."""

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
    ) -> None:
        super().__init__(session, cache, actor, audit)
        self.clients = ClientRepository(session)
        self.users = UserRepository(session)
        self.operations = BulkOperationRepository(session)

    def _batch(self, client_ids: list[str], limit_name: str = "max_clients") -> list[str]:
        """
        Deduplicate requested IDs and enforce the configured batch size.

        Raises:
            BadRequestError: If more clients are requested than allowed
        """
        ids = unique_ids(client_ids)
        limit = getattr(get_app_config().crm.bulk, limit_name)
        if len(ids) > limit:
            raise BadRequestError(f"At most {limit} clients can be processed per request")
        return ids

    async def _partition(
        self,
        client_ids: list[str],
        check: ClientCheck,
    ) -> tuple[list[Client], list[ClientError]]:
        """
        Split requested clients into those eligible for the operation
        and per-client errors.
        """
        found = await self.clients.get_many_accessible(client_ids, self.actor)
        eligible: list[Client] = []
        errors: list[ClientError] = []
        for client_id in client_ids:
            client = found.get(client_id)
            if client is None:
                errors.append(ClientError(client_id=client_id, error=CLIENT_NOT_FOUND))
                continue
            message = check(client)
            if message:
                errors.append(ClientError(client_id=client_id, error=message))
            else:
                eligible.append(client)
        return eligible, errors

    async def _apply(self, operation: str, clients: list[Client], **changes: Any) -> None:
        if not clients:
            return

        async def write() -> None:
            for client in clients:
                for key, value in changes.items():
                    setattr(client, key, value)
            await self.session.flush()

        await self._execute_db_operation(operation, write())

    async def _finish(
        self,
        event_type: str,
        clients: list[Client],
        errors: list[ClientError],
        **metadata: Any,
    ) -> None:
        client_ids = [client.id for client in clients]
        if not client_ids:
            return
        await self._invalidate_clients(client_ids)
        await self._audit(
            event_type,
            metadata={
                "client_ids": client_ids,
                "succeeded": len(client_ids),
                "failed": len(errors),
                **metadata,
            },
            resource_type="client",
        )

    # -------------------------------------------------------------------------
    # Synchronous batches
    # -------------------------------------------------------------------------

    async def archive(self, request: BulkArchiveRequest) -> BulkArchiveResult:
        client_ids = self._batch(request.client_ids)
        self._log_operation("Bulk archiving clients", count=len(client_ids))

        clients, errors = await self._partition(
            client_ids,
            lambda c: "Client is already archived" if c.is_archived else None,
        )
        await self._apply("bulk_archive", clients, archived_at=utc_now())
        await self._finish(AuditEvent.CLIENTS_BULK_ARCHIVED, clients, errors, reason=request.reason)

        return BulkArchiveResult(
            processed=len(client_ids),
            archived=len(clients),
            failed=len(errors),
            errors=errors,
        )

    async def restore(self, request: BulkRestoreRequest) -> BulkRestoreResult:
        client_ids = self._batch(request.client_ids)
        self._log_operation("Bulk restoring clients", count=len(client_ids))

        clients, errors = await self._partition(
            client_ids,
            lambda c: None if c.is_archived else "Client is not archived",
        )
        await self._apply("bulk_restore", clients, archived_at=None)
        await self._finish(AuditEvent.CLIENTS_BULK_RESTORED, clients, errors)

        return BulkRestoreResult(
            processed=len(client_ids),
            restored=len(clients),
            failed=len(errors),
            errors=errors,
        )

    async def delete(self, request: BulkDeleteRequest) -> BulkDeleteResult:
        """
        Permanently delete archived clients.

        Raises:
            BadRequestError: If deletion was not explicitly confirmed
        """
        if request.confirm_deletion is not True:
            raise BadRequestError("Deletion must be confirmed")

        client_ids = self._batch(request.client_ids, "max_delete")
        self._log_operation("Bulk deleting clients", count=len(client_ids))

        clients, errors = await self._partition(
            client_ids,
            lambda c: None if c.is_archived else "Only archived clients can be deleted",
        )
        if clients:
            await self._execute_db_operation(
                "bulk_delete",
                self.clients.delete_many(client.id for client in clients),
            )
        await self._finish(AuditEvent.CLIENTS_BULK_DELETED, clients, errors)

        return BulkDeleteResult(
            processed=len(client_ids),
            deleted=len(clients),
            failed=len(errors),
            errors=errors,
        )

    async def update_status(self, request: BulkUpdateStatusRequest) -> BulkUpdateResult:
        client_ids = self._batch(request.client_ids)
        target = request.status.value
        self._log_operation("Bulk updating client status", count=len(client_ids), status=target)

        def check(client: Client) -> str | None:
            if client.is_archived:
                return "Cannot update status of archived client"
            if client.status == target:
                return f"Client already has status {target}"
            return None

        clients, errors = await self._partition(client_ids, check)
        await self._apply("bulk_update_status", clients, status=target)
        await self._finish(
            AuditEvent.CLIENTS_BULK_STATUS_UPDATED,
            clients,
            errors,
            status=target,
            reason=request.reason,
        )

        return BulkUpdateResult(
            processed=len(client_ids),
            updated=len(clients),
            failed=len(errors),
            errors=errors,
        )

    async def update_tags(self, request: BulkUpdateTagsRequest) -> BulkUpdateResult:
        client_ids = self._batch(request.client_ids)
        tags = list(dict.fromkeys(request.tags))
        self._log_operation(
            "Bulk updating client tags",
            count=len(client_ids),
            tag_operation=request.operation,
        )

        clients, errors = await self._partition(
            client_ids,
            lambda c: "Cannot update tags of archived client" if c.is_archived else None,
        )

        async def write() -> None:
            for client in clients:
                current = list(client.tags or [])
                if request.operation == "add":
                    client.tags = current + [t for t in tags if t not in current]
                elif request.operation == "remove":
                    client.tags = [t for t in current if t not in tags]
                else:
                    client.tags = list(tags)
            await self.session.flush()

        if clients:
            await self._execute_db_operation("bulk_update_tags", write())
        await self._finish(
            AuditEvent.CLIENTS_BULK_TAGS_UPDATED,
            clients,
            errors,
            operation=request.operation,
            tags=tags,
        )

        return BulkUpdateResult(
            processed=len(client_ids),
            updated=len(clients),
            failed=len(errors),
            errors=errors,
        )

    async def assign_owner(self, request: BulkAssignOwnerRequest) -> BulkAssignOwnerResult:
        """
        Transfer clients to another user.

        Raises:
            NotFoundError: If the new owner does not exist
        """
        new_owner_id = request.new_owner_id
        if not await self.users.exists(new_owner_id):
            raise NotFoundError("New owner not found")

        client_ids = self._batch(request.client_ids)
        self._log_operation("Bulk assigning owner", count=len(client_ids), owner_id=new_owner_id)

        clients, errors = await self._partition(
            client_ids,
            lambda c: "Client is already owned by this user" if c.owner_id == new_owner_id else None,
        )
        await self._apply("bulk_assign_owner", clients, owner_id=new_owner_id)
        await self._finish(
            AuditEvent.CLIENTS_BULK_OWNER_ASSIGNED,
            clients,
            errors,
            new_owner_id=new_owner_id,
            transfer_notes=request.transfer_notes,
            transfer_documents=request.transfer_documents,
        )

        return BulkAssignOwnerResult(
            processed=len(client_ids),
            assigned=len(clients),
            failed=len(errors),
            errors=errors,
        )

    # -------------------------------------------------------------------------
    # Export and operation tracking
    # -------------------------------------------------------------------------

    async def export(self, request: BulkExportRequest) -> BulkExportResult:
        """
        Record a pending export.

        The caller dispatches the export job once the row is committed.
        """
        client_ids = self._batch(request.client_ids, "max_export")
        expiry_hours = get_app_config().crm.bulk.export_expiry_hours
        self._log_operation("Export requested", count=len(client_ids), format=request.format)

        parameters = request.model_dump(mode="json")
        parameters["client_ids"] = client_ids

        operation = await self._execute_db_operation(
            "create_export",
            self.operations.create(
                organization_id=self.actor.organization_id,
                user_id=self.actor.user_id,
                operation_type=BulkOperationType.EXPORT.value,
                status=BulkOperationStatus.PENDING.value,
                total_items=len(client_ids),
                parameters=parameters,
                errors=[],
                expires_at=utc_now() + timedelta(hours=expiry_hours),
            ),
        )
        await self._audit(
            AuditEvent.CLIENTS_EXPORT_REQUESTED,
            metadata={"client_count": len(client_ids), "format": request.format},
            resource_type="bulk_operation",
            resource_id=operation.id,
        )

        return BulkExportResult(
            operation_id=operation.id,
            status=BulkOperationStatus(operation.status),
            client_count=len(client_ids),
            format=request.format,
            expires_at=operation.expires_at,
        )

    async def _get_operation(self, operation_id: str) -> BulkOperation:
        operation = await self.operations.get_in_organization(
            operation_id, self.actor.organization_id
        )
        if operation is None:
            raise NotFoundError("Bulk operation not found")
        return operation

    async def get_status(self, operation_id: str) -> BulkOperationResponse:
        """
        Raises:
            NotFoundError: If the operation is not in the caller's organization
        """
        operation = await self._get_operation(operation_id)
        return BulkOperationResponse.model_validate(operation)

    async def list_operations(
        self,
        operation_type: BulkOperationType | None = None,
        status: BulkOperationStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> BulkOperationList:
        operations, total = await self.operations.list_for_organization(
            self.actor.organization_id,
            operation_type=operation_type.value if operation_type else None,
            status=status.value if status else None,
            limit=limit,
            offset=offset,
        )
        return BulkOperationList(
            operations=[BulkOperationResponse.model_validate(op) for op in operations],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def cancel(self, operation_id: str) -> BulkOperationResponse:
        """
        Cancel a pending or running operation.

        Raises:
            NotFoundError: If the operation does not exist
            BadRequestError: If the operation already finished
        """
        operation = await self._get_operation(operation_id)
        if operation.status not in CANCELLABLE_STATUSES:
            raise BadRequestError(f"Cannot cancel operation with status {operation.status}")

        self._log_operation("Cancelling bulk operation", operation_id=operation.id)
        operation = await self._execute_db_operation(
            "cancel_operation",
            self.operations.apply(
                operation,
                status=BulkOperationStatus.CANCELLED.value,
                completed_at=utc_now(),
            ),
        )
        await self._audit(
            AuditEvent.BULK_OPERATION_CANCELLED,
            metadata={"operation_type": operation.operation_type},
            resource_type="bulk_operation",
            resource_id=operation.id,
        )
        return BulkOperationResponse.model_validate(operation)

    async def get_export_file(self, operation_id: str) -> tuple[str, str, str]:
        """
        Rendered export content for download.

        Returns:
            Tuple of (content, content_type, filename)

        Raises:
            NotFoundError: If the operation does not exist or is not an export
            BadRequestError: If the export is not ready or has expired
        """
        operation = await self._get_operation(operation_id)
        if operation.operation_type != BulkOperationType.EXPORT:
            raise NotFoundError("Export not found")
        if operation.status != BulkOperationStatus.COMPLETED or operation.output is None:
            raise BadRequestError("Export is not ready")
        if operation.expires_at and operation.expires_at < utc_now():
            raise BadRequestError("Export has expired")

        result = operation.result or {}
        return (
            operation.output,
            result.get("content_type", "application/octet-stream"),
            result.get("filename", f"export-{operation.id}"),
        )
