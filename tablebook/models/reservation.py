"""Reservation model"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import relationship

from tablebook.database import Base


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle states"""
    PENDING = "pending"
    COUNTER_OFFERED = "counter_offered"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    SEATED = "seated"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({
    ReservationStatus.COMPLETED,
    ReservationStatus.NO_SHOW,
    ReservationStatus.DECLINED,
    ReservationStatus.CANCELLED,
    ReservationStatus.EXPIRED,
})

ACTIVE_STATUSES = frozenset(set(ReservationStatus) - TERMINAL_STATUSES)


class ReservationSource(str, enum.Enum):
    WIDGET = "widget"
    WALK_IN = "walk_in"
    STAFF = "staff"
    WAITLIST = "waitlist"


_active_sql = ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_STATUSES, key=lambda s: s.value))


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(12), unique=True, nullable=False)
    guest_id = Column(Uuid, ForeignKey("guests.id"))

    # Guest information
    guest_name = Column(String(255), nullable=False)
    guest_phone = Column(String(20))
    guest_email = Column(String(255))

    # Reservation details (restaurant-local wall clock)
    party_size = Column(Integer, nullable=False)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration_min = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value, index=True)
    source = Column(String(20), nullable=False, default=ReservationSource.WIDGET.value)
    table_id = Column(Uuid, ForeignKey("restaurant_tables.id"))

    # Deposit requirement captured at request time
    requires_deposit = Column(Boolean, nullable=False, default=False)
    deposit_amount = Column(Integer, nullable=False, default=0)

    special_requests = Column(Text)
    notes = Column(Text)

    # Counter-offer
    original_time = Column(String(5))
    counter_expires_at = Column(DateTime)

    # Transition timestamps (UTC)
    approved_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    arrived_at = Column(DateTime)
    seated_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    reminder_sent_at = Column(DateTime)

    created_by = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    table = relationship("RestaurantTable", lazy="selectin")
    guest = relationship("Guest", back_populates="reservations")
    payments = relationship(
        "ReservationPayment",
        back_populates="reservation",
        lazy="selectin",
        order_by="ReservationPayment.created_at",
    )

    __table_args__ = (
        # Duplicate-request guard: one live booking per phone per slot
        Index(
            "uq_reservations_active_phone_slot",
            "guest_phone",
            "date",
            "time",
            unique=True,
            postgresql_where=text(f"status IN ({_active_sql})"),
            sqlite_where=text(f"status IN ({_active_sql})"),
        ),
    )

    @property
    def payment(self) -> Optional["ReservationPayment"]:
        """The live (non-cancelled) payment, if any"""
        live = [p for p in self.payments if p.status != "cancelled"]
        return live[-1] if live else None

    @property
    def is_terminal(self) -> bool:
        return ReservationStatus(self.status) in TERMINAL_STATUSES
