"""Reservation payment model"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import relationship

from tablebook.database import Base


class PaymentType(str, enum.Enum):
    """Pre-authorization released later vs. fee captured on payment"""
    HOLD = "hold"
    DEPOSIT = "deposit"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    CAPTURED = "captured"
    RELEASED = "released"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# Status never regresses: captured may only move on to refunded
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.CAPTURED,
        PaymentStatus.RELEASED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.CAPTURED: {PaymentStatus.REFUNDED},
    PaymentStatus.RELEASED: set(),
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.CANCELLED: set(),
}


class ReservationPayment(Base):
    """Payment hold or deposit attached to a reservation"""
    __tablename__ = "reservation_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False, index=True)

    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    amount = Column(Integer, nullable=False)  # minor units
    amount_captured = Column(Integer, nullable=False, default=0)
    amount_refunded = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")

    # Processor reference and last known processor-side state
    processor_intent_id = Column(String(255), unique=True)
    processor_status = Column(String(50))
    failure_reason = Column(Text)

    captured_at = Column(DateTime)
    released_at = Column(DateTime)
    refunded_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservation = relationship("Reservation", back_populates="payments")

    __table_args__ = (
        # One live payment per reservation; cancelled intents are kept as history
        Index(
            "uq_reservation_payments_live",
            "reservation_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )

    def can_transition_to(self, new_status: PaymentStatus) -> bool:
        return new_status in PAYMENT_TRANSITIONS[PaymentStatus(self.status)]
