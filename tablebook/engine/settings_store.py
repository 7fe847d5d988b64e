"""Load and save the restaurant configuration"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.models.settings import RestaurantSettings
from tablebook.schemas.settings import RestaurantConfig

logger = structlog.get_logger()

SETTINGS_ROW_ID = 1


async def load_restaurant_config(db: AsyncSession) -> RestaurantConfig:
    """Validated configuration; defaults when nothing has been saved yet"""
    row = await db.get(RestaurantSettings, SETTINGS_ROW_ID)
    if row is None:
        return RestaurantConfig()
    return RestaurantConfig.model_validate(row.config_json or {})


async def save_restaurant_config(
    db: AsyncSession, config: RestaurantConfig, updated_by: Optional[str] = None
) -> RestaurantConfig:
    row = await db.get(RestaurantSettings, SETTINGS_ROW_ID)
    data = config.model_dump(mode="json")
    if row is None:
        row = RestaurantSettings(id=SETTINGS_ROW_ID, config_json=data, updated_by=updated_by)
        db.add(row)
    else:
        row.config_json = data
        row.updated_by = updated_by
    await db.commit()
    logger.info("restaurant_settings_saved", updated_by=updated_by)
    return config
