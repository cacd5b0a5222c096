"""
Integration Test Fixtures.

Fixtures for integration tests - real database, mocked Redis.
These fixtures build on the root conftest.py database fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import get_redis
from crm.backend.core.database import get_db_session
from crm.backend.core.security import create_access_token

# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
async def client(
    db_session: AsyncSession,
    cache: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client bound to the test session and cache mock.

    Every API call shares the session that gets rolled back after the test.

    Usage:
        async def test_list_contacts(client: AsyncClient, auth_headers: dict):
            response = await client.get("/api/v1/contacts", headers=auth_headers)
    """
    from crm.backend.main import create_app

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> MagicMock:
        return cache

    app = create_app()
    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_success(response: Any, expected_status: int = 200) -> dict[str, Any]:
        """
        Assert API response is successful.

        Returns:
            The ``data`` member of the envelope
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        body = response.json()
        assert body.get("success") is True, f"Response not successful: {body}"
        return body["data"]

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is an error envelope.

        Returns:
            The ``error`` member of the envelope
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        body = response.json()
        assert body.get("success") is False, f"Response should be error: {body}"
        assert body.get("error") is not None, f"Missing error details: {body}"

        if expected_code:
            actual_code = body["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )

        return body["error"]

    @staticmethod
    def assert_validation_error(response: Any, field: str | None = None) -> dict[str, Any]:
        """Assert a 422 envelope, optionally naming the offending field."""
        error = ApiAssertions.assert_error(response, 422, "VAL_REQUEST_INVALID")

        if field:
            errors = error.get("details", {}).get("validation_errors", [])
            fields = [e.get("field", "") for e in errors]
            assert any(field in f for f in fields), (
                f"Expected validation error for field '{field}', "
                f"got errors for: {fields}"
            )

        return error


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def auth_headers(actor) -> dict[str, str]:
    """Bearer token for the ``actor`` session."""
    token = create_access_token(data={"sub": actor.user_id, "org": actor.organization_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def outsider_headers(outsider) -> dict[str, str]:
    """Bearer token for the ``outsider`` session."""
    token = create_access_token(data={"sub": outsider.user_id, "org": outsider.organization_id})
    return {"Authorization": f"Bearer {token}"}
