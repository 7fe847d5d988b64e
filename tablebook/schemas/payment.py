"""Payment schemas"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentIntentRequest(BaseModel):
    """Guest request for a deposit or hold intent, verified by code and phone"""
    reservation_id: UUID
    code: str = Field(min_length=4, max_length=12)
    phone_last4: str = Field(pattern=r"^\d{4}$")


class PaymentIntentResponse(BaseModel):
    payment_id: UUID
    client_secret: Optional[str]
    amount: int
    currency: str
    type: str


class PaymentAction(BaseModel):
    """Staff payment action"""
    action: Literal["capture", "release", "refund"]
    amount: Optional[int] = Field(default=None, ge=1)


class PaymentResponse(BaseModel):
    """Payment response"""
    id: UUID
    reservation_id: UUID
    type: str
    status: str
    amount: int
    amount_captured: int
    amount_refunded: int
    currency: str
    processor_intent_id: Optional[str]
    processor_status: Optional[str]
    failure_reason: Optional[str]
    captured_at: Optional[datetime]
    released_at: Optional[datetime]
    refunded_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True
