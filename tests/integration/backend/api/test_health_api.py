"""
Integration Tests for Health Endpoints.
"""

from unittest.mock import AsyncMock, patch

import pytest

pytestmark = pytest.mark.integration

HEALTHY = {"status": "healthy", "latency_ms": 1}


class TestHealthEndpoints:
    async def test_liveness_needs_no_auth(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert "X-Request-ID" in response.headers
        assert response.headers["X-Response-Time"].endswith("ms")

    async def test_readiness_503_when_redis_down(self, client):
        with (
            patch("crm.backend.api.health.check_database", AsyncMock(return_value=HEALTHY)),
            patch(
                "crm.backend.api.health.check_redis",
                AsyncMock(return_value={"status": "unhealthy", "error": "down"}),
            ),
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 503

    async def test_detailed_reports_application(self, client):
        with (
            patch("crm.backend.api.health.check_database", AsyncMock(return_value=HEALTHY)),
            patch("crm.backend.api.health.check_redis", AsyncMock(return_value=HEALTHY)),
        ):
            response = await client.get("/health/detailed")

        body = response.json()
        assert body["status"] == "healthy"
        assert body["application"]["name"] == "CRM Business Modules"
