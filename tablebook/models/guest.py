"""Guest model"""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from tablebook.database import Base


class Guest(Base):
    """Guest profile keyed by normalized phone"""
    __tablename__ = "guests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(String(20), unique=True, nullable=False)  # digits only
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    notes = Column(Text)

    # Aggregates recomputed from linked reservations
    total_visits = Column(Integer, nullable=False, default=0)
    total_no_shows = Column(Integer, nullable=False, default=0)
    total_covers = Column(Integer, nullable=False, default=0)
    first_visit_date = Column(Date)
    last_visit_date = Column(Date)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    reservations = relationship("Reservation", back_populates="guest")
