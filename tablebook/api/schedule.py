"""Day override endpoints"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.api.deps import get_current_staff
from tablebook.database import get_db
from tablebook.engine.errors import NotFound
from tablebook.models.schedule import DayOverride
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.schedule import DayOverrideResponse, DayOverrideUpsert

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=List[DayOverrideResponse])
async def list_overrides(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    query = select(DayOverride)
    if from_date:
        query = query.where(DayOverride.date >= from_date)
    if to_date:
        query = query.where(DayOverride.date <= to_date)
    result = await db.execute(query.order_by(DayOverride.date))
    return result.scalars().all()


@router.put("", response_model=DayOverrideResponse)
async def upsert_override(
    data: DayOverrideUpsert,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the override for a date"""
    result = await db.execute(select(DayOverride).where(DayOverride.date == data.date))
    override = result.scalar_one_or_none()
    if override is None:
        override = DayOverride(**data.model_dump())
        db.add(override)
    else:
        for field, value in data.model_dump().items():
            setattr(override, field, value)

    await db.commit()
    await db.refresh(override)
    logger.info("day_override_saved", date=data.date.isoformat(), is_closed=data.is_closed, actor=staff.display_name)
    return override


@router.delete("/{override_date}", status_code=204)
async def delete_override(
    override_date: date,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(DayOverride).where(DayOverride.date == override_date))
    override = result.scalar_one_or_none()
    if override is None:
        raise NotFound("No override for this date", date=override_date.isoformat())
    await db.delete(override)
    await db.commit()
