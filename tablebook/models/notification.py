"""Notification delivery log"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, Text, Uuid

from tablebook.database import Base


class NotificationLog(Base):
    """One row per outbound SMS attempt"""
    __tablename__ = "notification_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template = Column(String(50), nullable=False)
    channel = Column(String(20), nullable=False, default="sms")
    recipient = Column(String(50), nullable=False)
    body = Column(Text)
    variables_json = Column(JSON, default=dict)

    status = Column(String(20), nullable=False)  # sent, failed, skipped
    provider_message_id = Column(String(64))
    error = Column(Text)

    reservation_id = Column(Uuid)
    waitlist_entry_id = Column(Uuid)

    created_at = Column(DateTime, default=datetime.utcnow)
