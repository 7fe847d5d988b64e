"""Restaurant settings model"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from tablebook.database import Base


class RestaurantSettings(Base):
    """Single-row store for the typed restaurant configuration"""
    __tablename__ = "restaurant_settings"

    id = Column(Integer, primary_key=True, default=1)

    # Validated by RestaurantConfig on every write and load
    config_json = Column(JSON, nullable=False, default=dict)

    updated_by = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
