"""
Stall Service — Store-wide settings
"""
import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stall.models.order import StoreSetting

logger = logging.getLogger(__name__)

STORE_SETTING_ID = 1


async def get_store_setting(db: AsyncSession) -> StoreSetting:
    """Fetch the single settings row, creating it (accepting orders) on first use."""
    result = await db.execute(select(StoreSetting).where(StoreSetting.id == STORE_SETTING_ID))
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = StoreSetting(id=STORE_SETTING_ID, accepting_orders=True)
        db.add(setting)
        await db.commit()
    return setting


async def is_accepting_orders(db: AsyncSession) -> bool:
    return (await get_store_setting(db)).accepting_orders


async def set_accepting_orders(db: AsyncSession, accepting: bool) -> StoreSetting:
    setting = await get_store_setting(db)
    setting.accepting_orders = accepting
    await db.commit()
    logger.info("Store settings updated: accepting_orders=%s", accepting)
    return setting
