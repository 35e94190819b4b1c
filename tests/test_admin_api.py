import pytest
from httpx import AsyncClient

from app.schemas.service_config import DEFAULT_SETTINGS
from app.services.wallet_service import WalletService

from conftest import add_transaction


@pytest.mark.api
@pytest.mark.admin
class TestAdminAPI:
    """Test suite for admin endpoints."""

    async def test_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/admin/settings", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["message"] == "Admin access required"

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/admin/settings")
        assert response.status_code == 401

    async def test_list_settings_creates_defaults(self, client: AsyncClient, admin_auth_headers):
        response = await client.get("/api/v1/admin/settings", headers=admin_auth_headers)

        assert response.status_code == 200
        keys = {setting["key"] for setting in response.json()}
        assert keys == set(DEFAULT_SETTINGS)

    async def test_update_setting(self, client: AsyncClient, admin_auth_headers):
        response = await client.put(
            "/api/v1/admin/settings/referral_reward_count",
            json={"value": "3"},
            headers=admin_auth_headers
        )
        fetched = await client.get("/api/v1/admin/settings/referral_reward_count", headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()["value"] == "3"
        assert fetched.json()["value"] == "3"

    async def test_update_setting_invalid(self, client: AsyncClient, admin_auth_headers):
        response = await client.put(
            "/api/v1/admin/settings/funding_charge_type",
            json={"value": "progressive"},
            headers=admin_auth_headers
        )
        assert response.status_code == 422

    async def test_service_status_blocks_purchases(self, client: AsyncClient, admin_auth_headers, auth_headers, airtime_payload):
        response = await client.put(
            "/api/v1/admin/services/airtime/status",
            json={"status": "coming_soon"},
            headers=admin_auth_headers
        )
        status = await client.get("/api/v1/services/status")
        purchase = await client.post(
            "/api/v1/services/purchase",
            json={"service": "airtime", "amount": 100.0, "details": airtime_payload, "pin": "1234"},
            headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["key"] == "service_airtime_status"
        assert status.json()["services"]["airtime"] == "coming_soon"
        assert purchase.status_code == 503
        assert "coming soon" in purchase.json()["message"]

    async def test_resolve_pending_transaction(self, client: AsyncClient, admin_auth_headers, test_profile, db_session):
        user_id = test_profile.id
        pending = await add_transaction(
            db_session, user_id=user_id, type="electricity", amount=400.0, status="pending", reference="ADM-API-1"
        )

        response = await client.patch(
            f"/api/v1/admin/transactions/{pending.id}/status",
            json={"status": "success"},
            headers=admin_auth_headers
        )
        again = await client.patch(
            f"/api/v1/admin/transactions/{pending.id}/status",
            json={"status": "failed"},
            headers=admin_auth_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert again.status_code == 422
        assert await WalletService(db_session).get_balance(user_id) == 600.0

    async def test_transaction_summary(self, client: AsyncClient, admin_auth_headers, test_profile, db_session):
        await add_transaction(
            db_session, user_id=test_profile.id, type="airtime", amount=100.0, status="success", reference="SUM-1"
        )

        response = await client.get("/api/v1/admin/transactions/summary", headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()["totals"] == {"count": 1, "success_volume": 100.0}
