"""
Stall Service — Admin dashboard API

Staff move orders through the lifecycle here. Every change is re-validated
against the transition table no matter what buttons the dashboard showed.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stall.api.deps import current_actor, get_allocator
from stall.core.errors import InvalidTransitionError, OrderNotFoundError, UnknownProductError, UnknownStatusError
from stall.core.optimistic_lock import StaleDataError
from stall.core.slot_allocator import SlotAllocator
from stall.db.database import get_db
from stall.db.order_ops import StatusChange, change_order_status, list_orders, refund_order
from stall.db.product_ops import create_product, list_products, update_product
from stall.db.store_ops import get_store_setting, set_accepting_orders
from stall.schemas.order import (
    OrderResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    StatusChangeRequest,
    StatusChangeResponse,
    StoreSettingsResponse,
    StoreSettingsUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def _change_response(change: StatusChange) -> StatusChangeResponse:
    base = OrderResponse.from_order(change.order).model_dump()
    return StatusChangeResponse(
        **base,
        previous_status=change.previous_status,
        is_undo=change.is_undo,
        changed=change.changed,
    )


async def _apply(coro) -> StatusChangeResponse:
    try:
        change = await coro
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    except UnknownStatusError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_detail())
    except StaleDataError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The order is being updated by someone else. Reload and try again.",
        )
    return _change_response(change)


@router.get("/orders", response_model=list[OrderResponse])
async def all_orders(
    status_filter: str | None = Query(None, alias="status", description="Filter by order status"),
    db: AsyncSession = Depends(get_db),
):
    """Order board: all orders, newest first."""
    try:
        orders = await list_orders(db, status_filter)
    except UnknownStatusError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return [OrderResponse.from_order(o) for o in orders]


@router.patch("/orders/{order_id}", response_model=StatusChangeResponse)
async def update_order_status(
    order_id: str,
    payload: StatusChangeRequest,
    actor: str = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
    allocator: SlotAllocator = Depends(get_allocator),
):
    """Move an order to a new status (staff action, including undo corrections)."""
    return await _apply(change_order_status(db, allocator, order_id, payload.status, actor))


@router.post("/orders/{order_id}/refund", response_model=StatusChangeResponse)
async def refund(
    order_id: str,
    actor: str = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
    allocator: SlotAllocator = Depends(get_allocator),
):
    """Refund a paid or ready order; completed and final orders are rejected."""
    return await _apply(refund_order(db, allocator, order_id, actor))


@router.get("/store-settings", response_model=StoreSettingsResponse)
async def read_store_settings(db: AsyncSession = Depends(get_db)):
    setting = await get_store_setting(db)
    return StoreSettingsResponse(accepting_orders=setting.accepting_orders)


@router.patch("/store-settings", response_model=StoreSettingsResponse)
async def update_store_settings(payload: StoreSettingsUpdate, db: AsyncSession = Depends(get_db)):
    """Stop or resume accepting new orders."""
    setting = await set_accepting_orders(db, payload.accepting_orders)
    return StoreSettingsResponse(accepting_orders=setting.accepting_orders)


@router.get("/products", response_model=list[ProductResponse])
async def all_products(db: AsyncSession = Depends(get_db)):
    """Full menu, including products switched off for today."""
    return await list_products(db, include_inactive=True)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def add_product(payload: ProductCreate, db: AsyncSession = Depends(get_db)):
    return await create_product(db, **payload.model_dump())


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def edit_product(product_id: str, payload: ProductUpdate, db: AsyncSession = Depends(get_db)):
    """Change price or details, or switch a sold-out product off (is_active=false)."""
    try:
        return await update_product(db, product_id, **payload.model_dump(exclude_unset=True, exclude_none=True))
    except UnknownProductError:
        raise HTTPException(status_code=404, detail="Product not found.")
