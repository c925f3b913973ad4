from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from tradie_market.core.config import get_settings
from tradie_market.core.container import build_container
from tradie_market.infrastructure.database import init_db
from tradie_market.main import create_app


def _bearer(user_id: str, role: str) -> dict[str, str]:
    settings = get_settings()
    payload = {"sub": user_id, "role": role, "exp": datetime.now(timezone.utc) + timedelta(minutes=60)}
    return {"Authorization": f"Bearer {jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)}"}


ADMIN = _bearer("admin-1", "admin")
CLIENT = _bearer("client-1", "client")
TRADIE = _bearer("tradie-1", "tradie")
OTHER_TRADIE = _bearer("tradie-2", "tradie")


@pytest_asyncio.fixture
async def api_client(settings, gateway, notifier):
    container = build_container(settings, gateway=gateway, notifier=notifier)
    await init_db(container.engine)
    app = create_app(container)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, container
    await container.aclose()


async def _post_job(client, **overrides):
    body = {"title": "Fix leaking tap", "job_type": "plumbing", "urgency_level": "medium"}
    body.update(overrides)
    resp = await client.post("/api/jobs", json=body, headers=CLIENT)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _buy(client, user_id, credits):
    resp = await client.post(
        "/api/credits/purchases",
        json={"user_id": user_id, "credits": credits, "reference_id": f"order-{user_id}"},
        headers=ADMIN,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_apply_select_and_history_flow(api_client):
    client, container = api_client
    purchased = await _buy(client, "tradie-1", 20)
    assert purchased["current_balance"] == 20
    job = await _post_job(client)

    quote = await client.get(f"/api/jobs/{job['id']}/quote", headers=TRADIE)
    assert quote.status_code == 200
    assert quote.json()["final_cost"] == 4

    resp = await client.post(
        f"/api/jobs/{job['id']}/applications",
        json={"custom_quote_cents": 18000, "proposed_timeline": "Tomorrow morning"},
        headers=TRADIE,
    )
    assert resp.status_code == 201, resp.text
    application = resp.json()
    assert application["credits_used"] == 4
    assert application["status"] == "submitted"

    duplicate = await client.post(f"/api/jobs/{job['id']}/applications", json={}, headers=TRADIE)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "DUPLICATE_APPLICATION"

    balance = await client.get("/api/credits/balance", headers=TRADIE)
    assert balance.json()["current_balance"] == 16

    usage = await client.get("/api/credits/usage", headers=TRADIE)
    assert usage.json()["total"] == 1
    assert usage.json()["items"][0]["signed_credits"] == -4

    transactions = await client.get("/api/credits/transactions", params={"type": "purchase"}, headers=TRADIE)
    assert [item["reference_id"] for item in transactions.json()["items"]] == ["order-tradie-1"]

    forbidden = await client.patch(
        f"/api/applications/{application['id']}/status",
        json={"status": "under_review"},
        headers=OTHER_TRADIE,
    )
    assert forbidden.status_code == 403

    for new_status in ("under_review", "selected"):
        resp = await client.patch(
            f"/api/applications/{application['id']}/status",
            json={"status": new_status},
            headers=CLIENT,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == new_status

    job_after = await client.get(f"/api/jobs/{job['id']}", headers=CLIENT)
    assert job_after.json()["status"] == "assigned"

    timeline = await client.get(f"/api/applications/{application['id']}/timeline", headers=TRADIE)
    assert [entry["activity_type"] for entry in timeline.json()][-1] == "APPLICATION_SELECTED"

    mine = await client.get("/api/applications/mine", params={"status": "selected"}, headers=TRADIE)
    assert mine.json()["total"] == 1

    await container.marketplace.wait_for_background()


@pytest.mark.asyncio
async def test_insufficient_credits_returns_payment_required(api_client):
    client, _ = api_client
    await _buy(client, "tradie-1", 3)
    job = await _post_job(client, job_type="electrical", urgency_level="urgent")

    resp = await client.post(f"/api/jobs/{job['id']}/applications", json={}, headers=TRADIE)

    assert resp.status_code == 402
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_CREDITS"
    balance = await client.get("/api/credits/balance", headers=TRADIE)
    assert balance.json()["current_balance"] == 3


@pytest.mark.asyncio
async def test_withdraw_refunds_over_http(api_client):
    client, container = api_client
    await _buy(client, "tradie-1", 10)
    job = await _post_job(client)
    application = (await client.post(f"/api/jobs/{job['id']}/applications", json={}, headers=TRADIE)).json()

    other = await client.post(f"/api/applications/{application['id']}/withdraw", json={}, headers=OTHER_TRADIE)
    assert other.status_code == 403

    resp = await client.post(
        f"/api/applications/{application['id']}/withdraw",
        json={"reason": "Double booked"},
        headers=TRADIE,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "withdrawn"

    again = await client.post(f"/api/applications/{application['id']}/withdraw", json={}, headers=TRADIE)
    assert again.status_code == 409

    balance = await client.get("/api/credits/balance", headers=TRADIE)
    assert balance.json()["current_balance"] == 10
    assert balance.json()["total_refunded"] == 4
    await container.marketplace.wait_for_background()


@pytest.mark.asyncio
async def test_auto_topup_settings_round_trip(api_client):
    client, _ = api_client

    missing = await client.post("/api/credits/auto-topup/enable", headers=TRADIE)
    assert missing.status_code == 404

    invalid = await client.put(
        "/api/credits/auto-topup",
        json={"trigger_balance": 5, "topup_amount": 1, "package_type": "standard"},
        headers=TRADIE,
    )
    assert invalid.status_code == 422

    resp = await client.put(
        "/api/credits/auto-topup",
        json={"trigger_balance": 5, "topup_amount": 20, "package_type": "Standard", "payment_method_id": "pm_1"},
        headers=TRADIE,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["package_type"] == "standard"
    assert resp.json()["status"] == "enabled"

    disabled = await client.post("/api/credits/auto-topup/disable", headers=TRADIE)
    assert disabled.json()["status"] == "disabled"


@pytest.mark.asyncio
async def test_requests_need_a_valid_role(api_client):
    client, _ = api_client

    anonymous = await client.get("/api/credits/balance")
    assert anonymous.status_code in (401, 403)

    bad_token = await client.get("/api/credits/balance", headers={"Authorization": "Bearer not-a-token"})
    assert bad_token.status_code == 401

    not_admin = await client.post("/api/credits/purchases", json={"user_id": "tradie-1", "credits": 5}, headers=TRADIE)
    assert not_admin.status_code == 403

    client_applying = await client.post("/api/jobs/unknown/applications", json={}, headers=CLIENT)
    assert client_applying.status_code == 403

    missing_job = await client.post("/api/jobs/unknown/applications", json={}, headers=TRADIE)
    assert missing_job.status_code == 404


@pytest.mark.asyncio
async def test_trial_credits_are_claimed_once(api_client):
    client, _ = api_client

    first = await client.post("/api/credits/trial", headers=TRADIE)
    second = await client.post("/api/credits/trial", headers=TRADIE)
    from_client = await client.post("/api/credits/trial", headers=CLIENT)

    assert first.status_code == 200
    assert first.json()["current_balance"] == 10
    assert second.json()["current_balance"] == 10
    assert from_client.status_code == 403


@pytest.mark.asyncio
async def test_health(api_client):
    client, _ = api_client

    resp = await client.get("/health")

    assert resp.json()["status"] == "ok"
