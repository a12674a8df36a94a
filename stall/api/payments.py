"""
Stall Service — Payment gateway callback

The gateway pings this endpoint when a payment finishes. The body only
identifies the payment; its outcome is read back from the gateway, then
COMPLETED pays the order and FAILED / CANCELED / EXPIRED cancel it and
free the pickup seat.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stall.api.deps import get_allocator, get_payment_gateway
from stall.core.errors import OrderNotFoundError, PaymentGatewayError
from stall.core.optimistic_lock import StaleDataError
from stall.core.slot_allocator import SlotAllocator
from stall.db.database import get_db
from stall.db.order_ops import apply_payment_result
from stall.payment_gateway import PaymentGateway
from stall.schemas.order import PaymentCallback, PaymentCallbackResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/callback", response_model=PaymentCallbackResponse)
async def payment_callback(
    payload: PaymentCallback,
    db: AsyncSession = Depends(get_db),
    allocator: SlotAllocator = Depends(get_allocator),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        change = await apply_payment_result(db, allocator, gateway, payload.merchant_payment_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    except PaymentGatewayError as exc:
        logger.warning("Payment callback for %s not applied: %s", payload.merchant_payment_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    except StaleDataError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order changed concurrently, retry.")

    # Unauthenticated caller: acknowledge without echoing the order back
    return PaymentCallbackResponse(order_id=change.order.id, status=change.order.status, changed=change.changed)
