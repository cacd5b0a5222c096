"""
Integration Tests for BulkService.

Runs against the test database; Redis is the always-miss mock from the
root conftest.
"""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import BadRequestError, NotFoundError
from crm.backend.core.utils import utc_now
from crm.backend.models import AuditLog, BulkOperation, Client
from crm.backend.models.enums import BulkOperationStatus, ClientStatus, ExportFormat
from crm.backend.schemas.bulk import (
    BulkArchiveRequest,
    BulkAssignOwnerRequest,
    BulkDeleteRequest,
    BulkExportRequest,
    BulkRestoreRequest,
    BulkUpdateStatusRequest,
    BulkUpdateTagsRequest,
)
from crm.backend.services.bulk import BulkService, unique_ids
from crm.backend.tasks.export import run_export


@pytest.fixture
def crm_limits():
    """Editable copy of the bulk limits, patched into the service."""
    config = get_app_config()
    limits = config.crm.bulk.model_copy()
    stub = SimpleNamespace(crm=SimpleNamespace(bulk=limits))
    with patch("crm.backend.services.bulk.get_app_config", return_value=stub):
        yield limits


@pytest.fixture
def service(db_session, cache, actor):
    return BulkService(db_session, cache, actor)


async def _audit_events(db_session) -> list[str]:
    result = await db_session.execute(select(AuditLog.event_type))
    return list(result.scalars().all())


def test_unique_ids_keeps_first_seen_order():
    assert unique_ids(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


class TestArchive:
    async def test_archives_active_and_reports_already_archived(self, service, make_client, db_session):
        active = await make_client()
        archived = await make_client(archived=True)

        result = await service.archive(
            BulkArchiveRequest(client_ids=[active.id, archived.id], reason="cleanup")
        )

        assert result.processed == 2
        assert result.archived == 1
        assert result.failed == 1
        assert result.errors[0].client_id == archived.id
        assert result.errors[0].error == "Client is already archived"
        assert active.archived_at is not None
        assert active.status == ClientStatus.ACTIVE
        assert "CLIENTS_BULK_ARCHIVED" in await _audit_events(db_session)

    async def test_missing_and_foreign_clients_are_not_found(self, service, make_client, outsider):
        foreign = await make_client(organization_id=outsider.organization_id, owner_id=outsider.user_id)
        missing = str(uuid4())

        result = await service.archive(BulkArchiveRequest(client_ids=[foreign.id, missing]))

        assert result.archived == 0
        assert {e.error for e in result.errors} == {"Client not found"}
        assert foreign.archived_at is None

    async def test_batch_without_successes_is_not_audited(self, service, make_client, db_session):
        archived = await make_client(archived=True)

        result = await service.archive(BulkArchiveRequest(client_ids=[archived.id, str(uuid4())]))

        assert result.failed == 2
        assert await _audit_events(db_session) == []

    async def test_duplicate_ids_processed_once(self, service, make_client):
        client = await make_client()

        result = await service.archive(BulkArchiveRequest(client_ids=[client.id, client.id]))

        assert result.processed == 1
        assert result.archived == 1

    async def test_invalidates_client_cache(self, service, make_client, cache):
        client = await make_client()

        await service.archive(BulkArchiveRequest(client_ids=[client.id]))

        cache.delete.assert_awaited_with(f"client:{client.id}")


class TestRestore:
    async def test_restores_archived_only(self, service, make_client):
        archived = await make_client(archived=True)
        active = await make_client()

        result = await service.restore(BulkRestoreRequest(client_ids=[archived.id, active.id]))

        assert result.restored == 1
        assert result.errors[0].error == "Client is not archived"
        assert archived.archived_at is None


class TestDelete:
    async def test_deletes_archived_only(self, service, make_client, db_session):
        archived = await make_client(archived=True)
        active = await make_client()

        result = await service.delete(
            BulkDeleteRequest(client_ids=[archived.id, active.id], confirm_deletion=True)
        )

        assert result.deleted == 1
        assert result.errors[0].error == "Only archived clients can be deleted"
        remaining = (await db_session.execute(select(Client.id))).scalars().all()
        assert archived.id not in remaining
        assert active.id in remaining

    async def test_requires_confirmation(self, service, make_client):
        client = await make_client(archived=True)
        request = BulkDeleteRequest.model_construct(client_ids=[client.id], confirm_deletion=False)

        with pytest.raises(BadRequestError, match="must be confirmed"):
            await service.delete(request)

    async def test_configured_limit_applies(self, service, crm_limits):
        crm_limits.max_delete = 1
        request = BulkDeleteRequest(client_ids=[str(uuid4()), str(uuid4())], confirm_deletion=True)

        with pytest.raises(BadRequestError, match="At most 1 clients"):
            await service.delete(request)


class TestUpdateStatus:
    async def test_skips_archived_and_unchanged(self, service, make_client):
        active = await make_client()
        inactive = await make_client(status=ClientStatus.INACTIVE.value)
        archived = await make_client(archived=True)

        result = await service.update_status(
            BulkUpdateStatusRequest(
                client_ids=[active.id, inactive.id, archived.id],
                status=ClientStatus.INACTIVE,
            )
        )

        assert result.updated == 1
        assert active.status == "inactive"
        errors = {e.client_id: e.error for e in result.errors}
        assert errors[inactive.id] == "Client already has status inactive"
        assert errors[archived.id] == "Cannot update status of archived client"


class TestUpdateTags:
    @pytest.mark.parametrize(
        ("operation", "expected"),
        [
            ("add", ["vip", "b2b", "new"]),
            ("remove", ["b2b"]),
            ("replace", ["vip", "new"]),
        ],
    )
    async def test_operations(self, service, make_client, operation, expected):
        client = await make_client(tags=["vip", "b2b"])

        result = await service.update_tags(
            BulkUpdateTagsRequest(client_ids=[client.id], operation=operation, tags=["vip", "new"])
        )

        assert result.updated == 1
        if operation == "remove":
            assert client.tags == expected
        else:
            assert sorted(client.tags) == sorted(expected)

    async def test_archived_clients_rejected(self, service, make_client):
        client = await make_client(archived=True, tags=[])

        result = await service.update_tags(
            BulkUpdateTagsRequest(client_ids=[client.id], operation="add", tags=["vip"])
        )

        assert result.failed == 1
        assert client.tags == []


class TestAssignOwner:
    async def test_transfers_clients(self, service, make_client, users):
        client = await make_client()
        new_owner = users["other"].id

        result = await service.assign_owner(
            BulkAssignOwnerRequest(client_ids=[client.id], new_owner_id=new_owner)
        )

        assert result.assigned == 1
        assert client.owner_id == new_owner

    async def test_same_owner_is_an_error(self, service, make_client, actor):
        client = await make_client()

        result = await service.assign_owner(
            BulkAssignOwnerRequest(client_ids=[client.id], new_owner_id=actor.user_id)
        )

        assert result.errors[0].error == "Client is already owned by this user"

    async def test_unknown_owner_raises(self, service, make_client):
        client = await make_client()

        with pytest.raises(NotFoundError, match="New owner not found"):
            await service.assign_owner(
                BulkAssignOwnerRequest(client_ids=[client.id], new_owner_id=str(uuid4()))
            )


class TestExport:
    async def test_creates_pending_operation(self, service, make_client, db_session):
        client = await make_client()

        result = await service.export(
            BulkExportRequest(client_ids=[client.id, client.id], format=ExportFormat.JSON)
        )

        assert result.status == BulkOperationStatus.PENDING
        assert result.client_count == 1
        operation = await db_session.get(BulkOperation, result.operation_id)
        assert operation.parameters["client_ids"] == [client.id]
        assert operation.expires_at > utc_now() + timedelta(hours=23)

    async def test_run_export_renders_and_download_serves_file(self, service, make_client, make_contact, db_session):
        client = await make_client(display_name="Acme")
        await make_contact(client)
        missing = str(uuid4())
        created = await service.export(
            BulkExportRequest(
                client_ids=[client.id, missing],
                format=ExportFormat.CSV,
                fields=["id", "display_name"],
                include_contacts=True,
            )
        )

        outcome = await run_export(db_session, created.operation_id)

        assert outcome["status"] == "completed"
        status = await service.get_status(created.operation_id)
        assert status.success_count == 1
        assert status.failure_count == 1
        assert status.progress == 100
        assert status.result["download_url"] == f"/api/v1/bulk/exports/{created.operation_id}/download"

        content, content_type, filename = await service.get_export_file(created.operation_id)
        assert content_type == "text/csv"
        assert filename.endswith(".csv")
        assert content.splitlines()[0] == "id,display_name,contacts_count"
        assert f"{client.id},Acme,1" in content

    async def test_unsupported_format_fails_operation(self, service, make_client, db_session):
        client = await make_client()
        created = await service.export(BulkExportRequest(client_ids=[client.id], format=ExportFormat.PDF))

        await run_export(db_session, created.operation_id)

        status = await service.get_status(created.operation_id)
        assert status.status == BulkOperationStatus.FAILED
        assert "not supported" in status.errors[0]["error"]
        with pytest.raises(BadRequestError, match="not ready"):
            await service.get_export_file(created.operation_id)

    async def test_cancelled_export_is_not_rendered(self, service, make_client, db_session):
        client = await make_client()
        created = await service.export(BulkExportRequest(client_ids=[client.id]))

        cancelled = await service.cancel(created.operation_id)
        outcome = await run_export(db_session, created.operation_id)

        assert cancelled.status == BulkOperationStatus.CANCELLED
        assert cancelled.completed_at is not None
        assert outcome["status"] == "cancelled"
        assert "BULK_OPERATION_CANCELLED" in await _audit_events(db_session)

    async def test_expired_export_cannot_be_downloaded(self, service, make_client, db_session):
        client = await make_client()
        created = await service.export(BulkExportRequest(client_ids=[client.id]))
        await run_export(db_session, created.operation_id)
        operation = await db_session.get(BulkOperation, created.operation_id)
        operation.expires_at = utc_now() - timedelta(minutes=1)
        await db_session.flush()

        with pytest.raises(BadRequestError, match="expired"):
            await service.get_export_file(created.operation_id)


class TestOperationTracking:
    async def test_cancel_finished_operation_is_rejected(self, service, make_client, db_session):
        client = await make_client()
        created = await service.export(BulkExportRequest(client_ids=[client.id]))
        await run_export(db_session, created.operation_id)

        with pytest.raises(BadRequestError, match="Cannot cancel operation with status completed"):
            await service.cancel(created.operation_id)

    async def test_status_of_other_organization_is_not_found(self, db_session, cache, outsider, service, make_client):
        client = await make_client()
        created = await service.export(BulkExportRequest(client_ids=[client.id]))

        with pytest.raises(NotFoundError):
            await BulkService(db_session, cache, outsider).get_status(created.operation_id)

    async def test_list_operations_filters_by_status(self, service, make_client):
        client = await make_client()
        first = await service.export(BulkExportRequest(client_ids=[client.id]))
        await service.export(BulkExportRequest(client_ids=[client.id]))
        await service.cancel(first.operation_id)

        listing = await service.list_operations(status=BulkOperationStatus.PENDING)

        assert listing.total == 1
        assert listing.operations[0].status == BulkOperationStatus.PENDING
