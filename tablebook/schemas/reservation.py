"""Reservation schemas"""

import datetime as dt
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from tablebook.schemas.payment import PaymentResponse
from tablebook.schemas.settings import DepositInfo, SlotTime


class GuestDetails(BaseModel):
    """Guest identity supplied with a request"""
    guest_name: str = Field(min_length=1, max_length=255)
    guest_phone: str = Field(min_length=7, max_length=20)
    guest_email: Optional[EmailStr] = None


class ReservationRequest(GuestDetails):
    """Public booking request"""
    party_size: int = Field(ge=1)
    date: dt.date
    time: SlotTime
    special_requests: Optional[str] = Field(default=None, max_length=1000)


class StaffReservationCreate(BaseModel):
    """Staff-entered reservation or walk-in"""
    source: Literal["staff", "walk_in"] = "staff"
    guest_name: str = Field(min_length=1, max_length=255)
    guest_phone: Optional[str] = Field(default=None, max_length=20)
    guest_email: Optional[EmailStr] = None
    party_size: int = Field(ge=1)
    date: Optional[dt.date] = None
    time: Optional[SlotTime] = None
    table_id: Optional[UUID] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None


class ReservationAction(BaseModel):
    """Staff lifecycle action"""
    action: Literal[
        "approve", "decline", "counter", "confirm", "arrive",
        "seat", "complete", "noshow", "cancel", "expire",
    ]
    new_time: Optional[SlotTime] = None
    table_id: Optional[UUID] = None
    reason: Optional[str] = None


class SelfServiceRequest(BaseModel):
    code: str = Field(min_length=4, max_length=12)
    phone_last4: str = Field(pattern=r"^\d{4}$")
    action: Literal["lookup", "cancel"] = "lookup"


class ReservationRequestResponse(BaseModel):
    """Returned to the guest after a booking request"""
    id: UUID
    code: str
    status: str
    deposit_required: bool
    deposit_amount: int


class ReservationResponse(BaseModel):
    """Reservation response"""
    id: UUID
    code: str
    guest_id: Optional[UUID]
    guest_name: str
    guest_phone: Optional[str]
    guest_email: Optional[str]
    party_size: int
    date: dt.date
    time: str
    end_time: str
    duration_min: int
    status: str
    source: str
    table_id: Optional[UUID]
    requires_deposit: bool
    deposit_amount: int
    special_requests: Optional[str]
    notes: Optional[str]
    original_time: Optional[str]
    counter_expires_at: Optional[dt.datetime]
    approved_at: Optional[dt.datetime]
    confirmed_at: Optional[dt.datetime]
    arrived_at: Optional[dt.datetime]
    seated_at: Optional[dt.datetime]
    completed_at: Optional[dt.datetime]
    cancelled_at: Optional[dt.datetime]
    created_at: dt.datetime
    payment: Optional[PaymentResponse] = None

    class Config:
        from_attributes = True


class PublicReservationResponse(BaseModel):
    """What a guest sees through self-service"""
    code: str
    guest_name: str
    party_size: int
    date: dt.date
    time: str
    status: str
    original_time: Optional[str]
    counter_expires_at: Optional[dt.datetime]
    requires_deposit: bool
    deposit_amount: int

    class Config:
        from_attributes = True


class AvailabilitySlot(BaseModel):
    """Candidate start time"""
    time: str
    available: bool
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    date: dt.date
    party_size: int
    duration_min: int
    slots: List[AvailabilitySlot] = []
    deposit: DepositInfo
