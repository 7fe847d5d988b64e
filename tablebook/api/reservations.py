"""Reservation API endpoints"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tablebook.api.deps import get_booking_service, get_current_staff
from tablebook.engine.booking import BookingService
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.reservation import (
    PublicReservationResponse,
    ReservationAction,
    ReservationRequest,
    ReservationRequestResponse,
    ReservationResponse,
    SelfServiceRequest,
    StaffReservationCreate,
)

router = APIRouter()


@router.post("/request", response_model=ReservationRequestResponse, status_code=201)
async def request_reservation(
    data: ReservationRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Guest booking request"""
    reservation = await service.request_reservation(data)
    return ReservationRequestResponse(
        id=reservation.id,
        code=reservation.code,
        status=reservation.status,
        deposit_required=reservation.requires_deposit,
        deposit_amount=reservation.deposit_amount,
    )


@router.post("/self-service", response_model=PublicReservationResponse)
async def self_service(
    data: SelfServiceRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Guest lookup or cancellation by code and phone"""
    return await service.self_service(data.code, data.phone_last4, data.action)


@router.post("/staff", response_model=ReservationResponse, status_code=201)
async def create_staff_reservation(
    data: StaffReservationCreate,
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    """Walk-in or phone booking entered by staff"""
    return await service.create_staff_reservation(data, actor=staff.display_name)


@router.get("", response_model=List[ReservationResponse])
async def list_reservations(
    date: Optional[date] = None,
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    return await service.list(day=date, status=status, limit=limit, offset=offset)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: UUID,
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get(reservation_id)


@router.post("/{reservation_id}/action", response_model=ReservationResponse)
async def act_on_reservation(
    reservation_id: UUID,
    data: ReservationAction,
    staff: StaffIdentity = Depends(get_current_staff),
    service: BookingService = Depends(get_booking_service),
):
    """Apply a lifecycle action (approve, counter, seat, complete, ...)"""
    return await service.act(reservation_id, data, actor=staff.display_name)
