"""
Stall Service — Customer orders API

Flow:
  1. JWT validated by middleware (request.state.user set)
  2. Price the cart from the menu
  3. Claim one seat in the chosen pickup slot
  4. Persist the order as pending with a fresh call number
  5. Customer pays; the gateway callback moves it to paid
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from stall.api.deps import caller_is_admin, current_user_id, get_allocator
from stall.core.errors import (
    OrderNotFoundError,
    ProductUnavailableError,
    SlotFullError,
    StoreClosedError,
    UnknownProductError,
    UnknownSlotError,
)
from stall.core.slot_allocator import SlotAllocator
from stall.db.database import get_db
from stall.db.order_ops import create_order, get_order, get_user_order, list_user_orders
from stall.receipts import render_receipt
from stall.schemas.order import OrderRequest, OrderResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: OrderRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
    allocator: SlotAllocator = Depends(get_allocator),
):
    """
    Place an order. Requires valid JWT (enforced by JWTAuthMiddleware).
    Idempotency enforced by IdempotencyMiddleware.
    """
    try:
        order = await create_order(
            db,
            allocator,
            user_id=user_id,
            time_slot_id=payload.time_slot_id,
            items=[i.model_dump() for i in payload.items],
        )
    except SlotFullError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This pickup time is no longer available. Please pick another time.",
        )
    except UnknownSlotError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid time slot.")
    except UnknownProductError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ProductUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StoreClosedError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    return OrderResponse.from_order(order)


@router.get("", response_model=list[OrderResponse])
async def my_orders(user_id: str = Depends(current_user_id), db: AsyncSession = Depends(get_db)):
    """List the caller's orders, newest first."""
    return [OrderResponse.from_order(o) for o in await list_user_orders(db, user_id)]


@router.get("/{order_id}", response_model=OrderResponse)
async def my_order(order_id: str, user_id: str = Depends(current_user_id), db: AsyncSession = Depends(get_db)):
    try:
        order = await get_user_order(db, order_id, user_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    return OrderResponse.from_order(order)


@router.get("/{order_id}/receipt", response_class=PlainTextResponse)
async def receipt(
    order_id: str,
    user_id: str = Depends(current_user_id),
    is_admin: bool = Depends(caller_is_admin),
    db: AsyncSession = Depends(get_db),
):
    """Printable receipt; staff may print any order's, customers only their own."""
    try:
        order = await get_order(db, order_id) if is_admin else await get_user_order(db, order_id, user_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    logger.info("Receipt rendered for order %s (call number %d)", order.id, order.call_number)
    return PlainTextResponse(
        render_receipt(order),
        headers={"Content-Disposition": f'inline; filename="receipt-{order.call_number}.txt"'},
    )
