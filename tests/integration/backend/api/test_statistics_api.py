"""
Integration Tests for the Statistics API.
"""

import pytest

from crm.backend.models.enums import RiskLevel

pytestmark = pytest.mark.integration

PREFIX = "/api/v1/statistics"


class TestStatisticsEndpoints:
    @pytest.mark.parametrize(
        "path",
        ["overview", "growth", "tag-stats", "risk", "activity", "vat", "top-clients", "dashboard"],
    )
    async def test_endpoint_returns_envelope(self, client, api, auth_headers, make_client, path):
        await make_client(tags=["vip"])

        api.assert_success(await client.get(f"{PREFIX}/{path}", headers=auth_headers))

    async def test_overview_counts(self, client, api, auth_headers, make_client):
        await make_client()
        await make_client(archived=True)

        data = api.assert_success(await client.get(f"{PREFIX}/overview", params={"period": "week"}, headers=auth_headers))

        assert data["total_clients"] == 2
        assert data["archived_clients"] == 1
        assert data["period"] == "week"

    async def test_growth_interval_count(self, client, api, auth_headers, make_client):
        await make_client()

        data = api.assert_success(
            await client.get(f"{PREFIX}/growth", params={"period": "month", "intervals": 4}, headers=auth_headers)
        )

        assert len(data["data_points"]) == 4

    async def test_top_clients_ascending_keeps_idle_client(self, client, api, auth_headers, make_client):
        await make_client(display_name="Idle")

        data = api.assert_success(
            await client.get(
                f"{PREFIX}/top-clients", params={"metric": "events", "order": "asc"}, headers=auth_headers
            )
        )

        assert data["total"] == 1
        assert data["clients"][0]["client_name"] == "Idle"
        assert data["clients"][0]["metric_value"] == 0.0

    async def test_dashboard_alerts(self, client, api, auth_headers, make_client):
        await make_client(risk_level=RiskLevel.HIGH.value)

        data = api.assert_success(await client.get(f"{PREFIX}/dashboard", headers=auth_headers))

        assert data["alerts"]["high_risk_clients"] == 1

    async def test_results_are_cached(self, client, api, auth_headers, cache, make_client):
        await make_client()

        api.assert_success(await client.get(f"{PREFIX}/vat", headers=auth_headers))

        key = cache.set.await_args.args[0]
        assert key.startswith("statistics:")
        assert ":vat" in key

    @pytest.mark.parametrize(
        ("path", "params", "field"),
        [
            ("overview", {"period": "decade"}, "period"),
            ("growth", {"intervals": 0}, "intervals"),
            ("top-clients", {"metric": "revenue"}, "metric"),
            ("tag-stats", {"limit": 500}, "limit"),
        ],
    )
    async def test_invalid_parameters(self, client, api, auth_headers, path, params, field):
        response = await client.get(f"{PREFIX}/{path}", params=params, headers=auth_headers)

        api.assert_validation_error(response, field)

    async def test_requires_authentication(self, client, api):
        api.assert_error(await client.get(f"{PREFIX}/overview"), 401)
