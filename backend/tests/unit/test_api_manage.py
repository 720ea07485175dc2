"""Tests for POST /manage."""

import pytest
from conftest import make_settings

from presswire.api import deps
from presswire.models.records import CompanyInfo, ManagementRecord
from presswire.services.management_tokens import ManagementTokenStore

MANAGE = "/api/v1/manage"


@pytest.fixture
def token(test_settings, store, clock):
    release = ManagementRecord(
        management_token="",
        slug="acme-123456-1",
        created_at=clock.now,
        headline="Acme opens Cork office",
        summary="Summary",
        content="Body",
        contact="press@company.ie",
        company=CompanyInfo(name="Acme Ltd", cro_number="123456"),
        verified_domain="company.ie",
    )
    return ManagementTokenStore(test_settings, store, clock=clock).issue(release)


async def _manage(client, action, token, data=None):
    body = {"action": action, "management_token": token}
    if data is not None:
        body["data"] = data
    return await client.post(MANAGE, json=body)


class TestCredentialChecks:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client):
        response = await client.post(MANAGE, json={"action": "get-pr"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_token_is_404(self, client):
        response = await _manage(client, "get-pr", "0" * 64)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_token_checked_before_action(self, client):
        response = await _manage(client, "delete-everything", "0" * 64)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_action_is_400(self, client, token):
        response = await _manage(client, "delete-everything", token)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ACTION"

    @pytest.mark.asyncio
    async def test_lapsed_token_is_404(self, client, token, clock):
        clock.advance(days=7, seconds=1)
        response = await _manage(client, "get-pr", token)
        assert response.status_code == 404


class TestActions:
    @pytest.mark.asyncio
    async def test_get_pr(self, client, token):
        response = await _manage(client, "get-pr", token)
        assert response.status_code == 200
        pr = response.json()["data"]["pr"]
        assert pr["slug"] == "acme-123456-1"
        assert pr["can_edit"] is True
        assert "management_token" not in pr

    @pytest.mark.asyncio
    async def test_edit_pr(self, client, token):
        response = await _manage(
            client, "edit-pr", token, {"headline": "New headline", "slug": "hijack"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["edit_count"] == 1

        pr = (await _manage(client, "get-pr", token)).json()["data"]["pr"]
        assert pr["headline"] == "New headline"
        assert pr["slug"] == "acme-123456-1"

    @pytest.mark.asyncio
    async def test_edit_without_fields_is_400(self, client, token):
        response = await _manage(client, "edit-pr", token, {"slug": "x"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_edit_after_window_is_403(self, client, token, clock):
        clock.advance(hours=24, seconds=1)
        response = await _manage(client, "edit-pr", token, {"headline": "Late"})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EDIT_WINDOW_EXPIRED"

    @pytest.mark.asyncio
    async def test_unpublish_pr(self, client, token):
        response = await _manage(client, "unpublish-pr", token)
        assert response.status_code == 200
        assert response.json()["data"]["unpublished_at"] is not None
        pr = (await _manage(client, "get-pr", token)).json()["data"]["pr"]
        assert pr["published"] is False

    @pytest.mark.asyncio
    async def test_get_analytics(self, client, token):
        await client.post(
            "/api/v1/analytics/track",
            json={"slug": "acme-123456-1", "session_id": "s1", "referrer": "direct"},
        )
        response = await _manage(client, "get-analytics", token)
        assert response.status_code == 200
        assert response.json()["data"]["analytics"]["total_views"] == 1

    @pytest.mark.asyncio
    async def test_extend_keeps_access_past_seven_days(self, client, token, clock):
        response = await _manage(client, "extend-pr", token, {"days": 30})
        assert response.status_code == 200
        clock.advance(days=10)
        assert (await _manage(client, "get-pr", token)).status_code == 200

    @pytest.mark.asyncio
    async def test_extend_rejects_non_integer_days(self, client, token):
        response = await _manage(client, "extend-pr", token, {"days": "thirty"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [10**7, True, 0])
    async def test_extend_rejects_out_of_range_days(self, client, token, days):
        response = await _manage(client, "extend-pr", token, {"days": days})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_edit_rejects_non_string_field(self, client, token):
        response = await _manage(client, "edit-pr", token, {"headline": {"a": 1}})
        assert response.status_code == 400
        response = await _manage(client, "get-pr", token)
        assert response.json()["data"]["pr"]["headline"] == "Acme opens Cork office"

    @pytest.mark.asyncio
    async def test_extend_requires_payment_in_production(self, app, client, token):
        app.dependency_overrides[deps.get_settings] = lambda: make_settings(
            environment="production"
        )
        response = await _manage(client, "extend-pr", token)
        assert response.status_code == 402
        assert response.json()["error"]["code"] == "PAYMENT_REQUIRED"
