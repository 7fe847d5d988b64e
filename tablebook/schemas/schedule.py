"""Day override schemas"""

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from tablebook.schemas.settings import ClockTime


class DayOverrideUpsert(BaseModel):
    """Create or replace the override for a date"""
    date: dt.date
    is_closed: bool = False
    open_time: Optional[ClockTime] = None
    close_time: Optional[ClockTime] = None
    max_covers: Optional[int] = Field(default=None, ge=1)
    reason: Optional[str] = None


class DayOverrideResponse(BaseModel):
    id: UUID
    date: dt.date
    is_closed: bool
    open_time: Optional[str]
    close_time: Optional[str]
    max_covers: Optional[int]
    reason: Optional[str]

    class Config:
        from_attributes = True
