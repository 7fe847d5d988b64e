"""Audit log model"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, Uuid

from tablebook.database import Base


class AuditLog(Base):
    """Audit trail for lifecycle and payment actions"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Actor information
    actor_type = Column(String(50))  # staff, guest, system
    actor_name = Column(String(255))

    # Action details
    action = Column(String(100), nullable=False)  # approve, seat, capture, waitlist_join, etc.
    resource_type = Column(String(50))  # reservation, payment, waitlist_entry
    resource_id = Column(Uuid)

    # Change data
    data_json = Column(JSON)  # {"before": "pending", "after": "approved", ...}

    created_at = Column(DateTime, default=datetime.utcnow)
