"""Date-specific schedule overrides"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text, Uuid

from tablebook.database import Base


class DayOverride(Base):
    """Closure, special hours or cover cap for one date"""
    __tablename__ = "day_overrides"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date = Column(Date, unique=True, nullable=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    open_time = Column(String(5))  # HH:MM local
    close_time = Column(String(5))
    max_covers = Column(Integer)
    reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
