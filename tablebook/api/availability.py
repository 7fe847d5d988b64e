"""Public availability endpoint"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from tablebook.api.deps import get_booking_service
from tablebook.engine.booking import BookingService
from tablebook.schemas.reservation import AvailabilityResponse, AvailabilitySlot

router = APIRouter()


@router.get("", response_model=AvailabilityResponse)
async def get_availability(
    date: date,
    party_size: int = Query(..., ge=1),
    service: BookingService = Depends(get_booking_service),
):
    """Bookable slots for a date and party size, plus the deposit requirement"""
    slots, deposit, duration = await service.get_availability(date, party_size)
    return AvailabilityResponse(
        date=date,
        party_size=party_size,
        duration_min=duration,
        slots=[AvailabilitySlot(time=s.time, available=s.available, reason=s.reason) for s in slots],
        deposit=deposit,
    )
