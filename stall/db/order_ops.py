"""
Stall Service — Order write path

Composes the slot allocator and the status lifecycle:
  - checkout claims a seat in the pickup slot before the order row exists
  - status changes are a single read-validate-write guarded by version_id
  - cancelling or refunding hands the seat back
"""
import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stall.core.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    SlotFullError,
    StoreClosedError,
    UnknownSlotError,
)
from stall.core.optimistic_lock import StaleDataError, with_optimistic_retry
from stall.core.order_status import (
    OrderStatus,
    allowed_values,
    describe_rejection,
    is_terminal,
    is_undo,
    is_valid_transition,
    parse_status,
)
from stall.core.slot_allocator import SlotAllocator
from stall.db.product_ops import price_items
from stall.db.store_ops import is_accepting_orders
from stall.models.order import CallNumberSequence, Order, StatusChangeLog
from stall.notifications import publish_status_change
from stall.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

# Mobile payment gateway status → order status. Anything else (CREATED,
# AUTHORIZED, ...) means the customer has not finished paying yet.
PAYMENT_STATUS_MAP: dict[str, OrderStatus] = {
    "COMPLETED": OrderStatus.PAID,
    "FAILED":    OrderStatus.CANCELLED,
    "CANCELED":  OrderStatus.CANCELLED,
    "EXPIRED":   OrderStatus.CANCELLED,
}


@dataclass
class StatusChange:
    order: Order
    previous_status: str
    is_undo: bool
    changed: bool = True


def order_total(items: list[dict]) -> int:
    return sum(item["price"] * item["quantity"] for item in items)


async def create_order(
    db: AsyncSession,
    allocator: SlotAllocator,
    user_id: str,
    time_slot_id: str,
    items: list[dict],
) -> Order:
    """
    Place a pending order in the given pickup slot.

    ``items`` are cart lines: product_id, quantity, size, customizations.
    Names and prices come from the menu, never from the caller.

    The seat is claimed after the cart is priced; if anything after the
    claim fails the seat is released before the error propagates, so a
    failed checkout never leaks capacity.
    """
    if not await is_accepting_orders(db):
        raise StoreClosedError("The stall is not accepting orders right now.")

    lines = await price_items(db, items)

    try:
        slot = allocator.try_reserve(time_slot_id)
    except SlotFullError:
        logger.info("Checkout for user %s rejected: slot %s is full", user_id, time_slot_id)
        raise

    try:
        seq = CallNumberSequence()
        db.add(seq)
        await db.flush()

        order = Order(
            user_id=user_id,
            call_seq=seq.id,
            status=OrderStatus.PENDING.value,
            total=order_total(lines),
            time_slot_id=slot.id,
            time_slot_label=slot.time,
            items=lines,
        )
        db.add(order)
        await db.commit()
        await db.refresh(order)
    except Exception:
        logger.exception("Order insert failed for user %s, releasing slot %s", user_id, time_slot_id)
        await db.rollback()
        allocator.release(time_slot_id)
        raise

    logger.info(
        "Order %s created: call number %d, slot %s (%d/%d left)",
        order.id, order.call_number, slot.time, slot.available, slot.capacity,
    )
    return order


async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


async def get_user_order(db: AsyncSession, order_id: str, user_id: str) -> Order:
    order = await get_order(db, order_id)
    if order.user_id != user_id:
        raise OrderNotFoundError(order_id)
    return order


async def list_user_orders(db: AsyncSession, user_id: str) -> list[Order]:
    result = await db.execute(
        select(Order).where(Order.user_id == user_id).order_by(Order.call_seq.desc())
    )
    return list(result.scalars().all())


async def list_orders(db: AsyncSession, status: str | None = None) -> list[Order]:
    """Admin board: all orders, newest first, optionally filtered by status."""
    query = select(Order).order_by(Order.call_seq.desc())
    if status:
        query = query.where(Order.status == parse_status(status).value)
    result = await db.execute(query)
    return list(result.scalars().all())


def _release_seat(allocator: SlotAllocator, order_id: str, slot_id: str) -> None:
    try:
        allocator.release(slot_id)
    except UnknownSlotError:
        # Slots are re-provisioned on restart; an order from an earlier
        # schedule has no seat left to return.
        logger.warning("Order %s references slot %s which is no longer provisioned", order_id, slot_id)


@with_optimistic_retry()
async def change_order_status(
    db: AsyncSession,
    allocator: SlotAllocator,
    order_id: str,
    requested,
    actor: str,
) -> StatusChange:
    """
    Move an order to ``requested`` if the lifecycle allows it.

      - READ:     current status + version_id
      - VALIDATE: against the transition table
      - WRITE:    UPDATE ... WHERE version_id = <read_version>
      - If another writer committed first → StaleDataError → retry from READ
    """
    target = parse_status(requested)

    row = (await db.execute(
        select(Order.status, Order.version_id, Order.time_slot_id).where(Order.id == order_id)
    )).first()
    if row is None:
        raise OrderNotFoundError(order_id)
    current, version, slot_id = row

    if not is_valid_transition(current, target):
        await db.rollback()
        raise InvalidTransitionError(
            current=current,
            requested=target.value,
            allowed=allowed_values(current),
            message=describe_rejection(current, target),
        )

    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.version_id == version)
        .values(status=target.value, version_id=version + 1, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Another transaction won the race → trigger retry
        await db.rollback()
        raise StaleDataError(f"Order {order_id} changed concurrently.")

    undo = is_undo(current, target)
    db.add(StatusChangeLog(
        order_id=order_id,
        from_status=current,
        to_status=target.value,
        is_undo=undo,
        actor=actor,
    ))
    await db.commit()

    logger.info(
        "Order %s: %s → %s by %s%s", order_id, current, target.value, actor, " (undo)" if undo else ""
    )

    if is_terminal(target):
        _release_seat(allocator, order_id, slot_id)

    order = await get_order(db, order_id)
    await publish_status_change(order.id, order.status, order.user_id, order.call_number)
    return StatusChange(order=order, previous_status=current, is_undo=undo)


async def refund_order(db: AsyncSession, allocator: SlotAllocator, order_id: str, actor: str) -> StatusChange:
    return await change_order_status(db, allocator, order_id, OrderStatus.REFUNDED, actor)


async def apply_payment_result(
    db: AsyncSession,
    allocator: SlotAllocator,
    gateway: PaymentGateway,
    order_id: str,
) -> StatusChange:
    """
    Ask the gateway how payment ``order_id`` ended and apply that result.

    The callback is only a nudge; its body is never trusted. Results that
    are already applied, or that the order has moved past (a late EXPIRED
    for an order staff already marked paid), are acknowledged as no-ops so
    the gateway stops retrying.
    """
    order = await get_order(db, order_id)
    gateway_status = (await gateway.get_payment_status(order_id)).upper()
    target = PAYMENT_STATUS_MAP.get(gateway_status)

    if target is None or order.status == target.value:
        logger.info("Payment %s for order %s: nothing to apply", gateway_status, order_id)
        return StatusChange(order=order, previous_status=order.status, is_undo=False, changed=False)

    try:
        return await change_order_status(db, allocator, order_id, target, actor="payment-gateway")
    except InvalidTransitionError as exc:
        logger.warning(
            "Payment %s for order %s ignored: order is already %s", gateway_status, order_id, exc.current
        )
        order = await get_order(db, order_id)
        return StatusChange(order=order, previous_status=order.status, is_undo=False, changed=False)
