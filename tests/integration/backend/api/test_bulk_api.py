"""
Integration Tests for the Bulk Operations API.
"""

from uuid import uuid4

import pytest

pytestmark = pytest.mark.integration

PREFIX = "/api/v1/bulk"


class TestAuthentication:
    async def test_missing_token_is_rejected(self, client, api):
        response = await client.post(f"{PREFIX}/archive", json={"client_ids": [str(uuid4())]})

        api.assert_error(response, 401, "AUTH_UNAUTHORIZED")
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_invalid_token_is_rejected(self, client, api):
        response = await client.post(
            f"{PREFIX}/archive",
            json={"client_ids": [str(uuid4())]},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        api.assert_error(response, 401)


class TestArchiveRestore:
    async def test_archive_then_restore(self, client, api, auth_headers, make_client):
        target = await make_client()

        archived = api.assert_success(
            await client.post(f"{PREFIX}/archive", json={"client_ids": [target.id]}, headers=auth_headers)
        )
        restored = api.assert_success(
            await client.post(f"{PREFIX}/restore", json={"client_ids": [target.id]}, headers=auth_headers)
        )

        assert archived["archived"] == 1
        assert restored["restored"] == 1

    async def test_empty_list_fails_validation(self, client, api, auth_headers):
        response = await client.post(f"{PREFIX}/archive", json={"client_ids": []}, headers=auth_headers)

        api.assert_validation_error(response, "client_ids")

    async def test_malformed_id_fails_validation(self, client, api, auth_headers):
        response = await client.post(f"{PREFIX}/archive", json={"client_ids": ["nope"]}, headers=auth_headers)

        api.assert_validation_error(response, "client_ids")

    async def test_request_id_is_echoed(self, client, auth_headers, make_client):
        target = await make_client()
        headers = {**auth_headers, "X-Request-ID": "req-bulk-1"}

        response = await client.post(f"{PREFIX}/archive", json={"client_ids": [target.id]}, headers=headers)

        assert response.headers["X-Request-ID"] == "req-bulk-1"


class TestDelete:
    async def test_confirmation_is_required(self, client, api, auth_headers, make_client):
        target = await make_client(archived=True)

        response = await client.post(
            f"{PREFIX}/delete",
            json={"client_ids": [target.id], "confirm_deletion": False},
            headers=auth_headers,
        )

        api.assert_validation_error(response, "confirm_deletion")

    async def test_deletes_archived_client(self, client, api, auth_headers, make_client):
        target = await make_client(archived=True)

        data = api.assert_success(
            await client.post(
                f"{PREFIX}/delete",
                json={"client_ids": [target.id], "confirm_deletion": True},
                headers=auth_headers,
            )
        )

        assert data["deleted"] == 1


class TestStatusTagsOwner:
    async def test_update_status(self, client, api, auth_headers, make_client):
        target = await make_client()

        data = api.assert_success(
            await client.post(
                f"{PREFIX}/update-status",
                json={"client_ids": [target.id], "status": "suspended"},
                headers=auth_headers,
            )
        )

        assert data["updated"] == 1

    async def test_unknown_status_fails_validation(self, client, api, auth_headers, make_client):
        target = await make_client()

        response = await client.post(
            f"{PREFIX}/update-status",
            json={"client_ids": [target.id], "status": "gone"},
            headers=auth_headers,
        )

        api.assert_validation_error(response, "status")

    async def test_update_tags(self, client, api, auth_headers, make_client):
        target = await make_client(tags=["old"])

        data = api.assert_success(
            await client.post(
                f"{PREFIX}/update-tags",
                json={"client_ids": [target.id], "operation": "replace", "tags": ["new"]},
                headers=auth_headers,
            )
        )

        assert data["updated"] == 1
        assert target.tags == ["new"]

    async def test_assign_unknown_owner_is_404(self, client, api, auth_headers, make_client):
        target = await make_client()

        response = await client.post(
            f"{PREFIX}/assign-owner",
            json={"client_ids": [target.id], "new_owner_id": str(uuid4())},
            headers=auth_headers,
        )

        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestExportLifecycle:
    async def test_inline_export_and_download(self, client, api, auth_headers, make_client):
        target = await make_client(display_name="Acme")

        export = api.assert_success(
            await client.post(
                f"{PREFIX}/export",
                json={"client_ids": [target.id], "format": "csv", "fields": ["id", "display_name"]},
                headers=auth_headers,
            ),
            expected_status=202,
        )
        assert export["status"] == "completed"
        assert export["download_url"].endswith(f"/bulk/exports/{export['operation_id']}/download")

        response = await client.get(export["download_url"], headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=" in response.headers["content-disposition"]
        assert f"{target.id},Acme" in response.text

    async def test_failed_export_cannot_be_downloaded(self, client, api, auth_headers, make_client):
        target = await make_client()

        export = api.assert_success(
            await client.post(
                f"{PREFIX}/export",
                json={"client_ids": [target.id], "format": "xlsx"},
                headers=auth_headers,
            ),
            expected_status=202,
        )
        response = await client.get(
            f"{PREFIX}/exports/{export['operation_id']}/download", headers=auth_headers
        )

        assert export["status"] == "failed"
        api.assert_error(response, 400, "REQ_BAD_REQUEST")

    async def test_status_list_and_cancel(self, client, api, auth_headers, make_client):
        target = await make_client()
        export = api.assert_success(
            await client.post(f"{PREFIX}/export", json={"client_ids": [target.id]}, headers=auth_headers),
            expected_status=202,
        )
        operation_id = export["operation_id"]

        status = api.assert_success(await client.get(f"{PREFIX}/status/{operation_id}", headers=auth_headers))
        listing = api.assert_success(
            await client.get(f"{PREFIX}/operations", params={"operation_type": "export"}, headers=auth_headers)
        )
        cancel = await client.post(f"{PREFIX}/cancel", json={"operation_id": operation_id}, headers=auth_headers)

        assert status["progress"] == 100
        assert listing["total"] == 1
        api.assert_error(cancel, 400, "REQ_BAD_REQUEST")

    async def test_other_organization_cannot_see_operation(
        self, client, api, auth_headers, outsider_headers, make_client
    ):
        target = await make_client()
        export = api.assert_success(
            await client.post(f"{PREFIX}/export", json={"client_ids": [target.id]}, headers=auth_headers),
            expected_status=202,
        )

        response = await client.get(f"{PREFIX}/status/{export['operation_id']}", headers=outsider_headers)

        api.assert_error(response, 404)
