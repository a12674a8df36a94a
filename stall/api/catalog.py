"""
Stall Service — Public read endpoints

What the customer and admin UIs need before they act: pickup slots with
their fullness, the status lifecycle they gate buttons on, and whether the
stall is taking orders at all.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stall.api.deps import get_allocator
from stall.core.order_status import status_table
from stall.core.slot_allocator import SlotAllocator
from stall.db.database import get_db
from stall.db.store_ops import get_store_setting
from stall.schemas.order import StoreSettingsResponse, TimeSlotResponse

router = APIRouter(tags=["catalog"])


@router.get("/timeslots", response_model=list[TimeSlotResponse])
async def list_timeslots(allocator: SlotAllocator = Depends(get_allocator)):
    return [TimeSlotResponse.from_slot(s) for s in allocator.list_slots()]


@router.get("/order-statuses")
async def order_statuses():
    """The transition table the server enforces, for the UI to render actions from."""
    return status_table()


@router.get("/store-settings", response_model=StoreSettingsResponse)
async def store_settings(db: AsyncSession = Depends(get_db)):
    setting = await get_store_setting(db)
    return StoreSettingsResponse(accepting_orders=setting.accepting_orders)
