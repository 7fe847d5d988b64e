"""Twilio SMS reply handler"""

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse
import structlog

from tablebook.api.deps import get_app_settings, get_booking_service, get_waitlist_manager
from tablebook.config import Settings
from tablebook.engine.booking import BookingService
from tablebook.engine.errors import BookingError
from tablebook.engine.waitlist import WaitlistManager
from tablebook.models.reservation import ReservationStatus
from tablebook.schemas.reservation import ReservationAction

router = APIRouter()
logger = structlog.get_logger()

CONFIRM_WORDS = {"YES", "Y", "CONFIRM"}
CANCEL_WORDS = {"CANCEL"}


async def _verify_signature(request: Request, settings: Settings) -> None:
    if not settings.twilio_auth_token:
        return
    form = await request.form()
    validator = RequestValidator(settings.twilio_auth_token)
    signature = request.headers.get("X-Twilio-Signature", "")
    if not validator.validate(str(request.url), dict(form), signature):
        logger.warning("twilio_signature_invalid")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")


async def _confirm(phone: str, service: BookingService) -> str:
    reservation = await service.upcoming_for_phone(phone)
    if reservation is None:
        return "We couldn't find an upcoming reservation for this number."
    if reservation.status == ReservationStatus.COUNTER_OFFERED.value:
        action = "approve"
    elif reservation.status == ReservationStatus.APPROVED.value:
        action = "confirm"
    elif reservation.status == ReservationStatus.CONFIRMED.value:
        return f"You're all set for {reservation.time}. See you soon!"
    else:
        return "Your request is still being reviewed. We'll text you once it is confirmed."
    await service.act(
        reservation.id,
        ReservationAction(action=action, reason="sms reply"),
        actor=reservation.guest_name,
        actor_type="guest",
    )
    return f"Thanks! Your reservation {reservation.code} at {reservation.time} is confirmed."


async def _cancel(phone: str, service: BookingService, manager: WaitlistManager) -> str:
    reservation = await service.upcoming_for_phone(phone)
    if reservation is not None:
        if reservation.status in (ReservationStatus.ARRIVED.value, ReservationStatus.SEATED.value):
            return "Please speak with the host about your table."
        await service.act(
            reservation.id,
            ReservationAction(action="cancel", reason="sms reply"),
            actor=reservation.guest_name,
            actor_type="guest",
        )
        return f"Your reservation {reservation.code} has been cancelled."

    entry = await manager.active_for_phone(phone)
    if entry is not None:
        await manager.act(entry.id, "cancel", actor=entry.guest_name)
        return "You've been removed from the waitlist."
    return "We couldn't find an upcoming reservation for this number."


@router.post("/twilio/sms")
async def handle_sms_reply(
    request: Request,
    From: str = Form(...),
    Body: str = Form(default=""),
    settings: Settings = Depends(get_app_settings),
    service: BookingService = Depends(get_booking_service),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """Handle YES / CANCEL replies from guests"""
    await _verify_signature(request, settings)
    words = Body.strip().upper().split()
    keyword = words[0] if words else ""
    logger.info("sms_reply_received", keyword=keyword)

    try:
        if keyword in CONFIRM_WORDS:
            reply = await _confirm(From, service)
        elif keyword in CANCEL_WORDS:
            reply = await _cancel(From, service, manager)
        else:
            reply = "Reply YES to confirm or CANCEL to cancel your reservation."
    except BookingError as e:
        logger.warning("sms_reply_rejected", keyword=keyword, error=e.code, detail=e.detail)
        reply = "We couldn't update your reservation by text. Please call the restaurant."

    response = MessagingResponse()
    response.message(reply)
    return Response(content=str(response), media_type="application/xml")
