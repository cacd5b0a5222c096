"""
Unit tests for export background tasks.

The broker and the session factory are mocked, so neither Redis nor a
database is required.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crm.backend.tasks import export
from crm.backend.tasks.export import (
    TASK_CONFIG,
    export_download_url,
    process_client_export,
    purge_expired_exports,
    register_tasks,
)


@pytest.fixture
def session():
    return AsyncMock()


@pytest.fixture
def session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    with patch("crm.backend.core.database.get_session_factory", return_value=factory):
        yield factory


@pytest.fixture
def broker():
    mock = MagicMock()
    mock.task.return_value = lambda func: func
    with patch("crm.backend.tasks.broker.get_broker", return_value=mock):
        export._registered = None
        yield mock
    export._registered = None


class TestRegisterTasks:
    def test_registers_both_tasks(self, broker):
        tasks = register_tasks()

        assert set(tasks) == {"process_client_export", "purge_expired_exports"}
        assert broker.task.call_count == 2

    def test_purge_carries_cron_label(self, broker):
        register_tasks()

        kwargs = {c.kwargs["task_name"]: c.kwargs for c in broker.task.call_args_list}
        assert kwargs["purge_expired_exports"]["schedule"] == [{"cron": "15 * * * *"}]
        assert "schedule" not in kwargs["process_client_export"]
        assert kwargs["process_client_export"]["max_retries"] == 2
        assert kwargs["process_client_export"]["timeout"] > 0

    def test_registration_is_cached(self, broker):
        first = register_tasks()
        second = register_tasks()

        assert first is second
        assert broker.task.call_count == 2

    def test_every_task_has_retry_settings(self):
        for config in TASK_CONFIG.values():
            assert "retry_on_error" in config
            assert "max_retries" in config


class TestProcessClientExport:
    async def test_commits_on_success(self, session, session_factory):
        outcome = {"operation_id": "op-1", "status": "completed"}
        with patch("crm.backend.tasks.export.run_export", AsyncMock(return_value=outcome)) as run:
            result = await process_client_export("op-1")

        assert result == outcome
        run.assert_awaited_once_with(session, "op-1")
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    async def test_rolls_back_and_reraises(self, session, session_factory):
        with patch("crm.backend.tasks.export.run_export", AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(RuntimeError, match="boom"):
                await process_client_export("op-1")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestPurgeExpiredExports:
    async def test_reports_cleared_count(self, session, session_factory):
        with patch(
            "crm.backend.tasks.export.BulkOperationRepository.clear_expired_output",
            AsyncMock(return_value=3),
        ):
            result = await purge_expired_exports()

        assert result["cleared"] == 3
        assert "completed_at" in result
        session.commit.assert_awaited_once()


def test_download_url_uses_api_prefix():
    assert export_download_url("op-9").endswith("/bulk/exports/op-9/download")
