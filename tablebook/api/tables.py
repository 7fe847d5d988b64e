"""Table reference data endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.api.deps import get_clock, get_current_staff, get_restaurant_config
from tablebook.database import get_db
from tablebook.engine.errors import NotFound, ValidationError
from tablebook.engine.timeutil import Clock
from tablebook.engine.turn_time import TurnTimeEstimator
from tablebook.models.table import RestaurantTable
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.settings import RestaurantConfig
from tablebook.schemas.table import TableCreate, TableEstimateResponse, TableResponse, TableUpdate

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=List[TableResponse])
async def list_tables(
    include_inactive: bool = False,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    query = select(RestaurantTable)
    if not include_inactive:
        query = query.where(RestaurantTable.is_active.is_(True))
    result = await db.execute(query.order_by(RestaurantTable.sort_order, RestaurantTable.name))
    return result.scalars().all()


@router.post("", response_model=TableResponse, status_code=201)
async def create_table(
    data: TableCreate,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    table = RestaurantTable(**data.model_dump())
    db.add(table)
    await db.commit()
    await db.refresh(table)
    logger.info("table_created", table_id=str(table.id), name=table.name)
    return table


@router.patch("/{table_id}", response_model=TableResponse)
async def update_table(
    table_id: UUID,
    data: TableUpdate,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Update capacity, ordering or the active flag"""
    table = await db.get(RestaurantTable, table_id)
    if table is None:
        raise NotFound("Table not found", table_id=str(table_id))

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(table, field, value)
    if table.max_capacity < table.min_capacity:
        raise ValidationError("max_capacity must be at least min_capacity")

    await db.commit()
    await db.refresh(table)
    return table


@router.get("/{table_id}/estimate", response_model=TableEstimateResponse)
async def estimate_table(
    table_id: UUID,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    config: RestaurantConfig = Depends(get_restaurant_config),
    clock: Clock = Depends(get_clock),
):
    """Predicted time the table frees up"""
    estimate = await TurnTimeEstimator(db, config, clock).estimate_table(table_id)
    return TableEstimateResponse(**estimate.model_dump())
