"""Payment API endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends

from tablebook.api.deps import get_booking_service, get_current_staff
from tablebook.engine.booking import BookingService
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.payment import PaymentAction, PaymentIntentRequest, PaymentIntentResponse, PaymentResponse

router = APIRouter()


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: PaymentIntentRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Create or reuse the deposit/hold intent for a verified guest"""
    payment, client_secret = await service.create_payment_intent(
        data.reservation_id, data.code, data.phone_last4
    )
    return PaymentIntentResponse(
        payment_id=payment.id,
        client_secret=client_secret,
        amount=payment.amount,
        currency=payment.currency,
        type=payment.type,
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_payment(payment_id)


@router.post("/{payment_id}/action", response_model=PaymentResponse)
async def act_on_payment(
    payment_id: UUID,
    data: PaymentAction,
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    """Capture, release or refund"""
    return await service.payment_action(payment_id, data.action, data.amount, actor=staff.display_name)
