"""Stripe webhook handler"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
import stripe
import structlog

from tablebook.api.deps import get_app_settings, get_booking_service
from tablebook.config import Settings
from tablebook.engine.booking import BookingService
from tablebook.gateways.stripe_gateway import to_processor_intent

router = APIRouter()
logger = structlog.get_logger()

HANDLED_EVENTS = {
    "payment_intent.succeeded",
    "payment_intent.amount_capturable_updated",
    "payment_intent.canceled",
}


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    settings: Settings = Depends(get_app_settings),
    service: BookingService = Depends(get_booking_service),
):
    """Reconcile local payments from processor events"""
    payload = await request.body()
    if not stripe_signature or not settings.stripe_webhook_secret:
        raise HTTPException(status_code=400, detail="Missing signature")
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, settings.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("stripe_webhook_rejected")
        raise HTTPException(status_code=400, detail="Invalid signature")

    logger.info("stripe_webhook_received", event_id=event.id, event_type=event.type)
    if event.type not in HANDLED_EVENTS:
        return {"received": True, "handled": False}

    intent = to_processor_intent(event.data.object)
    payment = await service.reconcile_processor_event(intent)
    return {"received": True, "handled": payment is not None}
