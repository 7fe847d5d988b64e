"""Restaurant settings endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.api.deps import get_current_staff, get_restaurant_config
from tablebook.database import get_db
from tablebook.engine.settings_store import save_restaurant_config
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.settings import RestaurantConfig

router = APIRouter()


@router.get("", response_model=RestaurantConfig)
async def get_settings(
    staff: StaffIdentity = Depends(get_current_staff),
    config: RestaurantConfig = Depends(get_restaurant_config),
):
    return config


@router.put("", response_model=RestaurantConfig)
async def replace_settings(
    config: RestaurantConfig,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Replace the whole configuration; the body is validated before it is stored"""
    return await save_restaurant_config(db, config, updated_by=staff.display_name)
