"""
Integration Tests for the Timeline API.
"""

from uuid import uuid4

import pytest

pytestmark = pytest.mark.integration

PREFIX = "/api/v1/timeline"


async def _create(client, api, headers, client_id, **fields):
    body = {"client_id": client_id, "event_type": "note", "title": "Note", **fields}
    return api.assert_success(await client.post(PREFIX, json=body, headers=headers), expected_status=201)


class TestEvents:
    async def test_create_get_update_delete(self, client, api, auth_headers, make_client):
        owner = await make_client()
        event = await _create(client, api, auth_headers, owner.id, metadata={"source": "phone"})

        fetched = api.assert_success(await client.get(f"{PREFIX}/{event['id']}", headers=auth_headers))
        updated = api.assert_success(
            await client.patch(f"{PREFIX}/{event['id']}", json={"importance": "high"}, headers=auth_headers)
        )
        deleted = await client.delete(f"{PREFIX}/{event['id']}", headers=auth_headers)

        assert fetched["metadata"] == {"source": "phone"}
        assert fetched["is_system"] is False
        assert updated["importance"] == "high"
        assert deleted.json()["message"] == "Timeline event deleted"
        api.assert_error(await client.get(f"{PREFIX}/{event['id']}", headers=auth_headers), 404)

    @pytest.mark.parametrize("field", ["title", "importance"])
    async def test_null_for_required_field_fails_validation(self, client, api, auth_headers, make_client, field):
        event = await _create(client, api, auth_headers, (await make_client()).id)

        response = await client.patch(f"{PREFIX}/{event['id']}", json={field: None}, headers=auth_headers)

        api.assert_validation_error(response, field)

    async def test_unknown_event_type_fails_validation(self, client, api, auth_headers, make_client):
        owner = await make_client()

        response = await client.post(
            PREFIX,
            json={"client_id": owner.id, "event_type": "party", "title": "x"},
            headers=auth_headers,
        )

        api.assert_validation_error(response, "event_type")

    async def test_unknown_client_is_404(self, client, api, auth_headers):
        response = await client.post(
            PREFIX,
            json={"client_id": str(uuid4()), "event_type": "note", "title": "x"},
            headers=auth_headers,
        )

        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestListing:
    async def test_filters_by_repeated_event_types(self, client, api, auth_headers, make_client):
        owner = await make_client()
        await _create(client, api, auth_headers, owner.id, event_type="call")
        await _create(client, api, auth_headers, owner.id, event_type="meeting")
        await _create(client, api, auth_headers, owner.id, event_type="note")

        page = api.assert_success(
            await client.get(
                PREFIX,
                params=[("client_id", owner.id), ("event_types", "call"), ("event_types", "meeting")],
                headers=auth_headers,
            )
        )

        assert page["total"] == 2
        assert {e["event_type"] for e in page["items"]} == {"call", "meeting"}

    async def test_inverted_date_range_fails_validation(self, client, api, auth_headers, make_client):
        owner = await make_client()

        response = await client.get(
            PREFIX,
            params={
                "client_id": owner.id,
                "start_date": "2030-02-01T00:00:00",
                "end_date": "2030-01-01T00:00:00",
            },
            headers=auth_headers,
        )

        api.assert_validation_error(response)


class TestBulkAndStats:
    async def test_bulk_create_then_stats(self, client, api, auth_headers, make_client):
        owner = await make_client()

        created = api.assert_success(
            await client.post(
                f"{PREFIX}/bulk",
                json={
                    "client_id": owner.id,
                    "events": [
                        {"event_type": "call", "title": "One"},
                        {"event_type": "call", "title": "Two", "importance": "critical"},
                    ],
                },
                headers=auth_headers,
            ),
            expected_status=201,
        )
        stats = api.assert_success(
            await client.get(f"{PREFIX}/stats", params={"client_id": owner.id, "period": "week"}, headers=auth_headers)
        )

        assert created["created"] == 2
        assert stats["total_events"] == 2
        assert stats["events_by_type"] == {"call": 2}
        assert stats["events_by_importance"] == {"normal": 1, "critical": 1}

    async def test_stats_rejects_unknown_period(self, client, api, auth_headers, make_client):
        owner = await make_client()

        response = await client.get(
            f"{PREFIX}/stats", params={"client_id": owner.id, "period": "decade"}, headers=auth_headers
        )

        api.assert_validation_error(response, "period")
