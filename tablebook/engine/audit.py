"""Audit trail helper"""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.models.audit import AuditLog


def record_audit(
    db: AsyncSession,
    action: str,
    resource_type: str,
    resource_id: uuid.UUID,
    actor: Optional[str] = None,
    actor_type: str = "staff",
    before: Optional[str] = None,
    after: Optional[str] = None,
    **extra: Any,
) -> AuditLog:
    """Add an audit row to the current transaction"""
    entry = AuditLog(
        actor_type=actor_type,
        actor_name=actor,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        data_json={"before": before, "after": after, **extra},
    )
    db.add(entry)
    return entry
