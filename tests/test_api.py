"""API endpoint tests"""

import pytest
from httpx import AsyncClient

from tablebook.config import Settings

from conftest import request_payload


async def _request(client: AsyncClient, **kwargs) -> dict:
    response = await client.post("/reservations/request", json=request_payload(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_availability(client: AsyncClient):
    response = await client.get("/availability", params={"date": "2026-06-05", "party_size": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["duration_min"] == 90
    assert data["slots"][0]["time"] == "17:00"
    assert data["slots"][-1]["time"] == "21:00"
    assert all(slot["available"] for slot in data["slots"])
    assert data["deposit"]["required"] is False


@pytest.mark.asyncio
async def test_availability_rejects_large_party(client: AsyncClient):
    response = await client.get("/availability", params={"date": "2026-06-05", "party_size": 40})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_party_size"


@pytest.mark.asyncio
async def test_request_reservation(client: AsyncClient, notifier):
    data = await _request(client)

    assert data["status"] == "pending"
    assert data["code"].startswith("TB-")
    assert data["deposit_required"] is False
    assert notifier.sent[-1]["to"] == "5551234567"


@pytest.mark.asyncio
async def test_request_for_past_date(client: AsyncClient):
    response = await client.post("/reservations/request", json=request_payload(day="2026-05-29"))

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "slot_unavailable"
    assert body["reason"] == "past_date"


@pytest.mark.asyncio
async def test_request_with_malformed_time(client: AsyncClient):
    response = await client.post("/reservations/request", json=request_payload(time="7pm"))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_request_conflicts(client: AsyncClient):
    await _request(client)
    response = await client.post("/reservations/request", json=request_payload())

    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_request"


@pytest.mark.asyncio
async def test_staff_endpoints_need_a_token(client: AsyncClient):
    assert (await client.get("/reservations")).status_code == 401

    response = await client.get("/reservations", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_staff_lifecycle_actions(authenticated_client: AsyncClient):
    created = await _request(authenticated_client)
    url = f"/reservations/{created['id']}/action"

    response = await authenticated_client.post(url, json={"action": "approve"})
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["payment"] is None

    response = await authenticated_client.post(url, json={"action": "complete"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"
    assert response.json()["current_status"] == "approved"

    listing = await authenticated_client.get("/reservations", params={"date": "2026-06-05"})
    assert [r["code"] for r in listing.json()] == [created["code"]]


@pytest.mark.asyncio
async def test_counter_offer_over_http(authenticated_client: AsyncClient):
    created = await _request(authenticated_client)

    response = await authenticated_client.post(
        f"/reservations/{created['id']}/action", json={"action": "counter", "new_time": "20:30"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "counter_offered"
    assert body["time"] == "20:30"
    assert body["original_time"] == "19:00"


@pytest.mark.asyncio
async def test_staff_walk_in(authenticated_client: AsyncClient):
    response = await authenticated_client.post(
        "/reservations/staff", json={"source": "walk_in", "guest_name": "Walk In", "party_size": 2}
    )

    assert response.status_code == 201
    assert response.json()["status"] == "seated"
    assert response.json()["source"] == "walk_in"


@pytest.mark.asyncio
async def test_self_service_lookup_and_cancel(client: AsyncClient):
    created = await _request(client)

    response = await client.post(
        "/reservations/self-service", json={"code": created["code"], "phone_last4": "1111"}
    )
    assert response.status_code == 403

    response = await client.post(
        "/reservations/self-service", json={"code": created["code"], "phone_last4": "4567"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    response = await client.post(
        "/reservations/self-service",
        json={"code": created["code"], "phone_last4": "4567", "action": "cancel"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_waitlist_flow(authenticated_client: AsyncClient, notifier):
    response = await authenticated_client.post(
        "/waitlist", json={"guest_name": "Walk Up", "guest_phone": "555-000-9999", "party_size": 3}
    )
    assert response.status_code == 201
    joined = response.json()
    assert joined["position"] == 1
    assert joined["estimated_minutes"] == 15

    estimate = await authenticated_client.get("/waitlist/estimate", params={"party_size": 2, "position": 2})
    assert estimate.status_code == 200
    assert estimate.json()["estimated_minutes"] == 30

    listing = await authenticated_client.get("/waitlist")
    assert [e["id"] for e in listing.json()] == [joined["id"]]

    response = await authenticated_client.post(f"/waitlist/{joined['id']}/action", json={"action": "notify"})
    assert response.status_code == 200
    assert response.json()["status"] == "notified"
    assert notifier.templates[-1] == "waitlist_ready"

    again = await authenticated_client.post(
        "/waitlist", json={"guest_name": "Walk Up", "guest_phone": "5550009999", "party_size": 3}
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_tables(authenticated_client: AsyncClient):
    response = await authenticated_client.post(
        "/tables", json={"name": "Patio 1", "min_capacity": 2, "max_capacity": 4, "section": "patio"}
    )
    assert response.status_code == 201
    table = response.json()

    listing = await authenticated_client.get("/tables")
    assert [t["name"] for t in listing.json()] == ["Patio 1"]

    response = await authenticated_client.patch(f"/tables/{table['id']}", json={"max_capacity": 1})
    assert response.status_code == 400

    response = await authenticated_client.patch(f"/tables/{table['id']}", json={"is_active": False})
    assert response.status_code == 200
    assert (await authenticated_client.get("/tables")).json() == []

    estimate = await authenticated_client.get(f"/tables/{table['id']}/estimate")
    assert estimate.status_code == 200
    assert estimate.json()["occupied"] is False


@pytest.mark.asyncio
async def test_day_override_closes_date(authenticated_client: AsyncClient):
    response = await authenticated_client.put(
        "/day-overrides", json={"date": "2026-06-05", "is_closed": True, "reason": "Private event"}
    )
    assert response.status_code == 200

    availability = await authenticated_client.get("/availability", params={"date": "2026-06-05", "party_size": 2})
    assert availability.json()["slots"] == []

    listing = await authenticated_client.get("/day-overrides", params={"from_date": "2026-06-01"})
    assert [o["date"] for o in listing.json()] == ["2026-06-05"]

    assert (await authenticated_client.delete("/day-overrides/2026-06-05")).status_code == 204
    assert (await authenticated_client.delete("/day-overrides/2026-06-05")).status_code == 404

    availability = await authenticated_client.get("/availability", params={"date": "2026-06-05", "party_size": 2})
    assert len(availability.json()["slots"]) == 9


@pytest.mark.asyncio
async def test_settings_are_validated(authenticated_client: AsyncClient):
    current = (await authenticated_client.get("/settings")).json()
    assert current["restaurant_name"] == "Test Bistro"

    response = await authenticated_client.put("/settings", json={**current, "timezone": "Mars/Olympus_Mons"})
    assert response.status_code == 422

    response = await authenticated_client.put(
        "/settings",
        json={**current, "deposit_enabled": True, "deposit_amount": 4000, "deposit_min_party_size": 4},
    )
    assert response.status_code == 200

    availability = await authenticated_client.get("/availability", params={"date": "2026-06-05", "party_size": 6})
    assert availability.json()["deposit"]["required"] is True
    assert availability.json()["deposit"]["amount"] == 4000


@pytest.mark.asyncio
async def test_deposit_payment_over_http(authenticated_client: AsyncClient, gateway):
    current = (await authenticated_client.get("/settings")).json()
    await authenticated_client.put(
        "/settings",
        json={**current, "deposit_enabled": True, "deposit_amount": 4000, "deposit_min_party_size": 2},
    )
    created = await _request(authenticated_client)
    assert created["deposit_required"] is True

    response = await authenticated_client.post(
        "/payments/intent",
        json={"reservation_id": created["id"], "code": created["code"], "phone_last4": "4567"},
    )
    assert response.status_code == 200
    intent = response.json()
    assert intent["amount"] == 4000
    assert intent["type"] == "hold"
    assert intent["client_secret"]

    payment = (await authenticated_client.get(f"/payments/{intent['payment_id']}")).json()
    gateway.authorize(payment["processor_intent_id"])

    response = await authenticated_client.post(
        f"/payments/{intent['payment_id']}/action", json={"action": "capture", "amount": 1500}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "captured"
    assert response.json()["amount_captured"] == 1500


def test_app_uses_the_settings_it_is_given():
    from tablebook.main import create_app

    settings = Settings(
        database_url="sqlite+aiosqlite:///./tablebook-other.db",
        redis_url="redis://cache.internal:6379/3",
        log_format="console",
    )
    app = create_app(settings)

    assert app.state.settings is settings
    assert app.state.db_engine.url.render_as_string(hide_password=False) == settings.database_url
    assert app.state.session_factory.kw["bind"] is app.state.db_engine
    assert app.state.celery.conf.broker_url == settings.redis_url
