"""Table schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class TableCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    min_capacity: int = Field(default=1, ge=1)
    max_capacity: int = Field(default=4, ge=1)
    section: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0

    @model_validator(mode="after")
    def check_capacity(self):
        if self.max_capacity < self.min_capacity:
            raise ValueError("max_capacity must be at least min_capacity")
        return self


class TableUpdate(BaseModel):
    name: Optional[str] = None
    min_capacity: Optional[int] = Field(default=None, ge=1)
    max_capacity: Optional[int] = Field(default=None, ge=1)
    section: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class TableResponse(BaseModel):
    id: UUID
    name: str
    min_capacity: int
    max_capacity: int
    section: Optional[str]
    is_active: bool
    sort_order: int
    created_at: datetime

    class Config:
        from_attributes = True


class TableEstimateResponse(BaseModel):
    table_id: str
    occupied: bool
    seated_at: Optional[datetime] = None
    estimated_free_at: Optional[datetime] = None
    minutes_until_free: int = 0
    based_on: str
