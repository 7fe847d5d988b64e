"""Webhook endpoint tests"""

import hashlib
import hmac
import json
import time

import pytest
from httpx import AsyncClient

from conftest import WEBHOOK_SECRET, request_payload


def _signed(event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _intent_event(intent_id: str, status: str, amount: int, event_type: str) -> dict:
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "amount_received": amount if status == "succeeded" else 0,
                "currency": "usd",
            }
        },
    }


async def _reservation_with_deposit(client: AsyncClient) -> tuple:
    current = (await client.get("/settings")).json()
    await client.put(
        "/settings",
        json={
            **current,
            "deposit_enabled": True,
            "deposit_type": "deposit",
            "deposit_amount": 3000,
            "deposit_min_party_size": 2,
        },
    )
    created = (await client.post("/reservations/request", json=request_payload())).json()
    intent = (
        await client.post(
            "/payments/intent",
            json={"reservation_id": created["id"], "code": created["code"], "phone_last4": "4567"},
        )
    ).json()
    payment = (await client.get(f"/payments/{intent['payment_id']}")).json()
    return created, payment


@pytest.mark.asyncio
async def test_stripe_webhook_rejects_bad_signature(client: AsyncClient):
    payload, headers = _signed(_intent_event("pi_x", "succeeded", 100, "payment_intent.succeeded"), "whsec_wrong")

    response = await client.post("/webhooks/stripe", content=payload, headers=headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_stripe_webhook_requires_signature(client: AsyncClient):
    response = await client.post("/webhooks/stripe", content="{}")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_stripe_webhook_captures_paid_deposit(authenticated_client: AsyncClient):
    created, payment = await _reservation_with_deposit(authenticated_client)
    assert payment["status"] == "pending"

    payload, headers = _signed(
        _intent_event(payment["processor_intent_id"], "succeeded", 3000, "payment_intent.succeeded")
    )
    response = await authenticated_client.post("/webhooks/stripe", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": True}

    payment = (await authenticated_client.get(f"/payments/{payment['id']}")).json()
    assert payment["status"] == "captured"
    assert payment["amount_captured"] == 3000

    # A late cancellation event never regresses a captured payment
    payload, headers = _signed(
        _intent_event(payment["processor_intent_id"], "canceled", 3000, "payment_intent.canceled")
    )
    await authenticated_client.post("/webhooks/stripe", content=payload, headers=headers)
    payment = (await authenticated_client.get(f"/payments/{payment['id']}")).json()
    assert payment["status"] == "captured"


@pytest.mark.asyncio
async def test_stripe_webhook_ignores_other_events(client: AsyncClient):
    payload, headers = _signed(_intent_event("pi_x", "succeeded", 100, "charge.refunded"))

    response = await client.post("/webhooks/stripe", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["handled"] is False


@pytest.mark.asyncio
async def test_sms_yes_confirms_reservation(authenticated_client: AsyncClient):
    created = (await authenticated_client.post("/reservations/request", json=request_payload())).json()
    await authenticated_client.post(f"/reservations/{created['id']}/action", json={"action": "approve"})

    response = await authenticated_client.post(
        "/webhooks/twilio/sms", data={"From": "+15551234567", "Body": " yes "}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<Response><Message>" in response.text
    assert "is confirmed" in response.text

    reservation = (await authenticated_client.get(f"/reservations/{created['id']}")).json()
    assert reservation["status"] == "confirmed"
    assert reservation["confirmed_at"] is not None


@pytest.mark.asyncio
async def test_sms_yes_accepts_counter_offer(authenticated_client: AsyncClient):
    created = (await authenticated_client.post("/reservations/request", json=request_payload())).json()
    await authenticated_client.post(
        f"/reservations/{created['id']}/action", json={"action": "counter", "new_time": "20:00"}
    )

    await authenticated_client.post("/webhooks/twilio/sms", data={"From": "+15551234567", "Body": "Y"})

    reservation = (await authenticated_client.get(f"/reservations/{created['id']}")).json()
    assert reservation["status"] == "approved"
    assert reservation["time"] == "20:00"


@pytest.mark.asyncio
async def test_sms_cancel_leaves_waitlist(authenticated_client: AsyncClient):
    joined = (
        await authenticated_client.post(
            "/waitlist", json={"guest_name": "Walk Up", "guest_phone": "5550009999", "party_size": 2}
        )
    ).json()

    response = await authenticated_client.post(
        "/webhooks/twilio/sms", data={"From": "+15550009999", "Body": "CANCEL please"}
    )

    assert "removed from the waitlist" in response.text
    assert (await authenticated_client.get("/waitlist")).json() == []
    assert joined["position"] == 1


@pytest.mark.asyncio
async def test_sms_other_text_gets_help(client: AsyncClient):
    response = await client.post("/webhooks/twilio/sms", data={"From": "+15550000000", "Body": "hello?"})

    assert response.status_code == 200
    assert "Reply YES to confirm or CANCEL" in response.text
