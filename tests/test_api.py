"""
HTTP tests through the FastAPI app: routing, identity headers, error shapes
"""
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fundraising.api.deps import get_analytics_service, get_ledger_store, get_totals_maintainer
from fundraising.database.database import get_db
from fundraising.main import app
from fundraising.models import DonationStatus
from fundraising.services.analytics import AnalyticsService
from fundraising.services.totals import TotalsMaintainer

ADMIN = {"X-User-ID": "1", "X-User-Role": "admin"}


def org_headers(organization_id, user_id=100):
    return {"X-User-ID": str(user_id), "X-User-Role": "organization", "X-Organization-ID": str(organization_id)}


def donor_headers(donor_id):
    return {"X-User-ID": str(donor_id), "X-User-Role": "donor"}


# ============================================================================
# FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def client(session_factory, store, clock):
    """App wired to the per-test database"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(store, report_timeout=10.0, clock=clock)
    app.dependency_overrides[get_totals_maintainer] = lambda: TotalsMaintainer(session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def world(seed):
    org = await seed.organization("Relief Org")
    other = await seed.organization("Other Org")
    cause = await seed.cause(org.id, target="1000")
    donor = await seed.donor("donor@example.com")
    return {"org": org, "other": other, "cause": cause, "donor": donor}


def campaign_payload(cause_ids, **overrides):
    payload = {
        "title": "Winter Relief",
        "description": "Blankets for families",
        "cause_ids": cause_ids,
        "accepted_donation_types": ["MONEY", "CLOTHES"],
        "start_date": "2026-11-01T00:00:00Z",
        "end_date": "2027-02-28T00:00:00Z",
        "donation_type": "MONEY",
        "target_amount": "1000",
        "target_quantity": 0,
        "location": "Dhaka",
        "impact": "Warm homes",
    }
    payload.update(overrides)
    return payload


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_metrics_exposed(self, client):
        await client.get("/health")
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestErrorShapes:

    @pytest.mark.asyncio
    async def test_missing_identity_is_forbidden(self, client, world):
        response = await client.post("/campaigns", json=campaign_payload([world["cause"].id]))

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    @pytest.mark.asyncio
    async def test_request_validation_is_400(self, client, world):
        response = await client.post(
            "/campaigns", json=campaign_payload([]), headers=org_headers(world["org"].id)
        )

        body = response.json()
        assert response.status_code == 400
        assert body["error"] == "validation_error"
        assert body["message"] == "Invalid request data"
        assert any("cause_ids" in detail["field"] for detail in body["details"])

    @pytest.mark.asyncio
    async def test_sub_cent_amount_is_400(self, client, world):
        response = await client.post(
            "/donations",
            json={"organization_id": world["org"].id, "cause_id": world["cause"].id, "type": "MONEY",
                  "amount": "0.004"},
            headers=donor_headers(world["donor"].id),
        )

        assert response.status_code == 400
        assert any("amount" in detail["field"] for detail in response.json()["details"])

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        response = await client.get("/campaigns/404")

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "message": "Campaign 404 not found"}

    @pytest.mark.asyncio
    async def test_foreign_cause_is_forbidden(self, client, world, seed):
        foreign = await seed.cause(world["other"].id)

        response = await client.post(
            "/campaigns", json=campaign_payload([foreign.id]), headers=org_headers(world["org"].id)
        )

        assert response.status_code == 403


class TestDonationFlow:

    @pytest.mark.asyncio
    async def test_campaign_donation_confirmation_updates_totals(self, client, world):
        org_id = world["org"].id
        created = await client.post(
            "/campaigns", json=campaign_payload([world["cause"].id], status="active"), headers=org_headers(org_id)
        )
        assert created.status_code == 201
        campaign_id = created.json()["id"]
        assert Decimal(created.json()["total_target_amount"]) == Decimal("1000")

        donation = await client.post(
            "/donations",
            json={"organization_id": org_id, "cause_id": world["cause"].id, "campaign_id": campaign_id,
                  "type": "MONEY", "amount": "400"},
            headers=donor_headers(world["donor"].id),
        )
        assert donation.status_code == 201
        assert donation.json()["status"] == DonationStatus.PENDING.value
        donation_id = donation.json()["id"]

        change = {"previous_status": "PENDING", "new_status": "CONFIRMED"}
        first = await client.post(f"/internal/donations/{donation_id}/status", json=change, headers=ADMIN)
        again = await client.post(f"/internal/donations/{donation_id}/status", json=change, headers=ADMIN)

        assert first.status_code == 200
        assert first.json()["applied"] is True
        assert again.json()["duplicate"] is True

        campaign = (await client.get(f"/campaigns/{campaign_id}")).json()
        cause = (await client.get(f"/causes/{world['cause'].id}")).json()
        assert Decimal(campaign["total_raised_amount"]) == Decimal("400")
        assert campaign["total_supporters"] == 1
        assert Decimal(cause["raised_amount"]) == Decimal("400")

        conflict = await client.delete(f"/campaigns/{campaign_id}", headers=org_headers(org_id))
        assert conflict.status_code == 409
        assert conflict.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_status_endpoint_requires_admin(self, client, world, seed):
        donation = await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "10",
                                       status=DonationStatus.PENDING)

        response = await client.post(
            f"/internal/donations/{donation.id}/status",
            json={"previous_status": "PENDING", "new_status": "CONFIRMED"},
            headers=org_headers(world["org"].id),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_transition_is_400(self, client, world, seed):
        donation = await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "10",
                                       status=DonationStatus.PENDING)

        response = await client.post(
            f"/internal/donations/{donation.id}/status",
            json={"previous_status": "PENDING", "new_status": "RECEIVED"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestAnalyticsEndpoints:

    @pytest.mark.asyncio
    async def test_overview_for_own_organization(self, client, world, seed):
        await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "120")

        response = await client.get(
            f"/analytics/organizations/{world['org'].id}/overview", headers=org_headers(world["org"].id)
        )

        body = response.json()
        assert response.status_code == 200
        assert len(body["monthly_trend"]) == 12
        assert Decimal(body["monthly_trend"][-1]["total"]) == Decimal("120")

    @pytest.mark.asyncio
    async def test_overview_of_other_organization_is_forbidden(self, client, world):
        response = await client.get(
            f"/analytics/organizations/{world['org'].id}/overview", headers=org_headers(world["other"].id)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cause_of_other_organization_is_404(self, client, world):
        response = await client.get(f"/analytics/causes/{world['cause'].id}", headers=org_headers(world["other"].id))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_donor_leaderboard(self, client, world, seed):
        await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "80")

        response = await client.get(f"/analytics/organizations/{world['org'].id}/donors", headers=ADMIN)

        leaders = response.json()["top_donors"]
        assert response.status_code == 200
        assert [leader["email"] for leader in leaders] == ["donor@example.com"]

    @pytest.mark.asyncio
    async def test_donor_dashboard(self, client, world, seed):
        await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "80")

        response = await client.get("/analytics/donors/me/dashboard", headers=donor_headers(world["donor"].id))

        body = response.json()
        assert response.status_code == 200
        assert Decimal(body["total_donated"]) == Decimal("80")
        assert body["organizations_supported"] == 1

    @pytest.mark.asyncio
    async def test_organization_dashboard(self, client, world, seed):
        await seed.donation(world["donor"].id, world["org"].id, world["cause"].id, "80")

        response = await client.get(
            f"/analytics/organizations/{world['org'].id}/dashboard", headers=org_headers(world["org"].id)
        )

        body = response.json()
        assert response.status_code == 200
        assert body["donations"]["total_donations"] == 1
        assert body["causes"]["total_causes"] == 1
