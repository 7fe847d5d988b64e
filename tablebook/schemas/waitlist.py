"""Waitlist schemas"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class WaitlistJoin(BaseModel):
    guest_name: str = Field(min_length=1, max_length=255)
    guest_phone: str = Field(min_length=7, max_length=20)
    guest_email: Optional[EmailStr] = None
    party_size: int = Field(ge=1)
    notes: Optional[str] = Field(default=None, max_length=500)


class WaitlistJoinResponse(BaseModel):
    id: UUID
    position: int
    estimated_minutes: int


class WaitlistAction(BaseModel):
    """Staff waitlist action"""
    action: Literal["notify", "seat", "cancel", "remove"]
    create_reservation: bool = True
    table_id: Optional[UUID] = None


class WaitlistEntryResponse(BaseModel):
    """Waitlist entry response"""
    id: UUID
    guest_name: str
    guest_phone: str
    party_size: int
    status: str
    position: Optional[int]
    estimated_wait: Optional[int]
    reservation_id: Optional[UUID]
    notes: Optional[str]
    joined_at: datetime
    notified_at: Optional[datetime]
    seated_at: Optional[datetime]
    left_at: Optional[datetime]

    class Config:
        from_attributes = True


class WaitEstimateResponse(BaseModel):
    estimated_minutes: int
    estimated_time: str
    based_on: str
