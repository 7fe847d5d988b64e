"""Waitlist model"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from tablebook.database import Base


class WaitlistStatus(str, enum.Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    SEATED = "seated"
    CANCELLED = "cancelled"
    LEFT = "left"


ACTIVE_WAITLIST_STATUSES = (WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value)


class WaitlistEntry(Base):
    """Walk-in standby line entry"""
    __tablename__ = "waitlist_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    guest_id = Column(Uuid, ForeignKey("guests.id"))

    guest_name = Column(String(255), nullable=False)
    guest_phone = Column(String(20), nullable=False, index=True)
    guest_email = Column(String(255))
    party_size = Column(Integer, nullable=False)
    notes = Column(Text)

    status = Column(String(20), nullable=False, default=WaitlistStatus.WAITING.value, index=True)
    position = Column(Integer)  # 1-based among active entries, null once inactive
    estimated_wait = Column(Integer)  # minutes

    reservation_id = Column(Uuid, ForeignKey("reservations.id"))

    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notified_at = Column(DateTime)
    seated_at = Column(DateTime)
    left_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_WAITLIST_STATUSES
