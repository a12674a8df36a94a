"""
Order write path against a real (SQLite) database: checkout, status changes,
the optimistic lock, and the slot bookkeeping that rides along.
"""
import json

import pytest
from sqlalchemy import select, update
from sqlalchemy.sql.dml import Update

from stall.core.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    ProductUnavailableError,
    SlotFullError,
    StoreClosedError,
    UnknownProductError,
    UnknownSlotError,
    UnknownStatusError,
)
from stall.core.optimistic_lock import StaleDataError, with_optimistic_retry
from stall.core.order_status import OrderStatus
from stall.db import order_ops
from stall.db.store_ops import set_accepting_orders
from stall.models.order import Order, StatusChangeLog

pytestmark = pytest.mark.usefixtures("fake_redis", "menu")

ITEMS = [
    {"product_id": "katsudon", "quantity": 2, "size": "large", "customizations": []},
    {"product_id": "miso", "quantity": 1, "size": None, "customizations": ["no-tofu"]},
]


async def _place(db, allocator, slot_id="slot-1210", user_id="student-001"):
    return await order_ops.create_order(db, allocator, user_id=user_id, time_slot_id=slot_id, items=ITEMS)


@pytest.mark.asyncio
async def test_create_order_claims_a_seat(db, allocator):
    order = await _place(db, allocator)

    assert order.status == "pending"
    assert order.total == 1200
    assert order.time_slot_label == "12:10"
    assert order.call_number == 202  # first sequence id is 1
    assert order.created_at is not None
    assert allocator.get("slot-1210").available == 2


@pytest.mark.asyncio
async def test_call_numbers_are_sequential(db, allocator):
    first = await _place(db, allocator)
    second = await _place(db, allocator)
    assert second.call_seq == first.call_seq + 1
    assert second.call_number == first.call_number + 1


@pytest.mark.asyncio
async def test_full_slot_creates_no_order(db, allocator):
    await _place(db, allocator, slot_id="slot-1220")
    with pytest.raises(SlotFullError):
        await _place(db, allocator, slot_id="slot-1220")

    orders = (await db.execute(select(Order))).scalars().all()
    assert len(orders) == 1


@pytest.mark.asyncio
async def test_unknown_slot_creates_no_order(db, allocator):
    with pytest.raises(UnknownSlotError):
        await _place(db, allocator, slot_id="slot-nope")
    assert (await db.execute(select(Order))).scalars().all() == []


@pytest.mark.asyncio
async def test_failed_insert_hands_the_seat_back(db, allocator, monkeypatch):
    def boom(items):
        raise RuntimeError("db went away")

    monkeypatch.setattr(order_ops, "order_total", boom)
    with pytest.raises(RuntimeError):
        await _place(db, allocator)
    assert allocator.get("slot-1210").available == 3


@pytest.mark.asyncio
async def test_closed_store_rejects_checkout_without_touching_slots(db, allocator):
    await set_accepting_orders(db, False)
    with pytest.raises(StoreClosedError):
        await _place(db, allocator)
    assert allocator.get("slot-1210").available == 3


@pytest.mark.asyncio
async def test_status_change_is_validated_and_audited(db, allocator):
    order = await _place(db, allocator)

    change = await order_ops.change_order_status(db, allocator, order.id, "paid", actor="payment-gateway")
    assert change.order.status == "paid"
    assert change.previous_status == "pending"
    assert change.is_undo is False
    assert change.order.version_id == 2

    logs = (await db.execute(select(StatusChangeLog))).scalars().all()
    assert [(l.from_status, l.to_status, l.actor) for l in logs] == [("pending", "paid", "payment-gateway")]


@pytest.mark.asyncio
async def test_rejected_change_leaves_order_untouched(db, allocator):
    order = await _place(db, allocator)
    order_id = order.id  # the rollback below expires the instance

    with pytest.raises(InvalidTransitionError) as excinfo:
        await order_ops.change_order_status(db, allocator, order_id, OrderStatus.READY, actor="staff")

    err = excinfo.value
    assert (err.current, err.requested, err.allowed) == ("pending", "ready", ["paid", "cancelled"])
    fresh = await order_ops.get_order(db, order_id)
    assert (fresh.status, fresh.version_id) == ("pending", 1)
    assert (await db.execute(select(StatusChangeLog))).scalars().all() == []


@pytest.mark.asyncio
async def test_unknown_status_and_order(db, allocator):
    order = await _place(db, allocator)
    with pytest.raises(UnknownStatusError):
        await order_ops.change_order_status(db, allocator, order.id, "shipped", actor="staff")
    with pytest.raises(OrderNotFoundError):
        await order_ops.change_order_status(db, allocator, "missing", "paid", actor="staff")


@pytest.mark.asyncio
async def test_cancel_and_refund_release_the_seat(db, allocator):
    a = await _place(db, allocator)
    b = await _place(db, allocator)
    assert allocator.get("slot-1210").available == 1

    await order_ops.change_order_status(db, allocator, a.id, "cancelled", actor="staff")
    assert allocator.get("slot-1210").available == 2

    await order_ops.change_order_status(db, allocator, b.id, "paid", actor="payment-gateway")
    await order_ops.refund_order(db, allocator, b.id, actor="staff")
    assert allocator.get("slot-1210").available == 3


@pytest.mark.asyncio
async def test_undo_is_flagged_in_the_audit_log(db, allocator):
    order = await _place(db, allocator)
    for target in ("paid", "ready", "completed"):
        await order_ops.change_order_status(db, allocator, order.id, target, actor="staff")

    change = await order_ops.change_order_status(db, allocator, order.id, "ready", actor="staff")
    assert change.is_undo is True

    last = (await db.execute(
        select(StatusChangeLog).order_by(StatusChangeLog.created_at.desc(), StatusChangeLog.to_status)
    )).scalars().all()
    assert any(l.is_undo and l.from_status == "completed" for l in last)


@pytest.mark.asyncio
async def test_completed_order_cannot_be_refunded(db, allocator):
    order = await _place(db, allocator)
    for target in ("paid", "ready", "completed"):
        await order_ops.change_order_status(db, allocator, order.id, target, actor="staff")

    with pytest.raises(InvalidTransitionError):
        await order_ops.refund_order(db, allocator, order.id, actor="staff")
    assert allocator.get("slot-1210").available == 2


class _RacingSession:
    """Lets another writer commit right before our first UPDATE."""

    def __init__(self, inner, before_first_update):
        self._inner = inner
        self._before_first_update = before_first_update
        self.raced = False

    async def execute(self, statement, *args, **kwargs):
        if not self.raced and isinstance(statement, Update):
            self.raced = True
            await self._before_first_update()
        return await self._inner.execute(statement, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._inner, name)


@pytest.mark.asyncio
async def test_concurrent_writer_forces_revalidation(db, sessionmaker, allocator):
    order = await _place(db, allocator)
    order_id = order.id

    async def customer_cancels():
        async with sessionmaker() as other:
            await other.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(status="cancelled", version_id=Order.version_id + 1)
            )
            await other.commit()

    racing = _RacingSession(db, customer_cancels)

    # The payment lands after the cancel; re-validation against the fresh
    # status must reject it instead of overwriting the cancel.
    with pytest.raises(InvalidTransitionError) as excinfo:
        await order_ops.change_order_status(racing, allocator, order_id, "paid", actor="payment-gateway")

    assert racing.raced
    assert excinfo.value.current == "cancelled"
    fresh = await order_ops.get_order(db, order_id)
    assert fresh.status == "cancelled"


@pytest.mark.asyncio
async def test_optimistic_retry_gives_up_after_max_attempts():
    calls = []

    @with_optimistic_retry(max_retries=3)
    async def always_stale():
        calls.append(1)
        raise StaleDataError("version moved")

    with pytest.raises(StaleDataError):
        await always_stale()
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_optimistic_retry_returns_once_write_lands():
    calls = []

    @with_optimistic_retry(max_retries=3)
    async def stale_once():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version moved")
        return "written"

    assert await stale_once() == "written"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_payment_results_come_from_the_gateway(db, allocator, payment_gateway):
    paid = await _place(db, allocator)
    failed = await _place(db, allocator)

    waiting = await order_ops.apply_payment_result(db, allocator, payment_gateway, paid.id)
    assert waiting.changed is False and waiting.order.status == "pending"

    payment_gateway.statuses[paid.id] = "COMPLETED"
    change = await order_ops.apply_payment_result(db, allocator, payment_gateway, paid.id)
    assert change.changed and change.order.status == "paid"

    repeat = await order_ops.apply_payment_result(db, allocator, payment_gateway, paid.id)
    assert repeat.changed is False

    payment_gateway.statuses[failed.id] = "FAILED"
    change = await order_ops.apply_payment_result(db, allocator, payment_gateway, failed.id)
    assert change.order.status == "cancelled"
    assert allocator.get("slot-1210").available == 2
    assert payment_gateway.lookups == [paid.id, paid.id, paid.id, failed.id]


@pytest.mark.asyncio
async def test_late_failure_for_paid_order_is_acknowledged(db, allocator, payment_gateway):
    order = await _place(db, allocator)
    order_id = order.id
    await order_ops.change_order_status(db, allocator, order_id, "paid", actor="staff")

    payment_gateway.statuses[order_id] = "EXPIRED"
    change = await order_ops.apply_payment_result(db, allocator, payment_gateway, order_id)

    assert change.changed is False
    assert change.order.status == "paid"
    assert allocator.get("slot-1210").available == 2


@pytest.mark.asyncio
async def test_order_lines_are_priced_from_the_menu(db, allocator):
    order = await _place(db, allocator)
    assert order.items == [
        {"id": "katsudon", "name": "Katsudon", "price": 550, "quantity": 2, "size": "large", "customizations": []},
        {"id": "miso", "name": "Miso soup", "price": 100, "quantity": 1, "size": None,
         "customizations": ["no-tofu"]},
    ]
    assert order.total == 550 * 2 + 100


@pytest.mark.asyncio
async def test_unknown_or_inactive_product_claims_no_seat(db, allocator):
    with pytest.raises(UnknownProductError):
        await order_ops.create_order(
            db, allocator, user_id="student-001", time_slot_id="slot-1210",
            items=[{"product_id": "lobster", "quantity": 1}],
        )
    with pytest.raises(ProductUnavailableError):
        await order_ops.create_order(
            db, allocator, user_id="student-001", time_slot_id="slot-1210",
            items=[{"product_id": "tendon", "quantity": 1}],
        )
    assert allocator.get("slot-1210").available == 3
    assert (await db.execute(select(Order))).scalars().all() == []


@pytest.mark.asyncio
async def test_status_changes_are_published(db, allocator, fake_redis):
    order = await _place(db, allocator)
    pubsub = fake_redis.pubsub()
    await pubsub.subscribe(f"order:{order.id}")
    await pubsub.get_message(timeout=1.0)  # subscribe confirmation

    await order_ops.change_order_status(db, allocator, order.id, "paid", actor="payment-gateway")

    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
    assert message is not None
    payload = json.loads(message["data"])
    assert payload["status"] == "paid"
    assert payload["call_number"] == order.call_number
    await pubsub.aclose()


@pytest.mark.asyncio
async def test_listing(db, allocator):
    mine = await _place(db, allocator, user_id="student-001")
    other = await _place(db, allocator, user_id="student-002")
    await order_ops.change_order_status(db, allocator, other.id, "paid", actor="payment-gateway")

    assert [o.id for o in await order_ops.list_orders(db)] == [other.id, mine.id]
    assert [o.id for o in await order_ops.list_orders(db, "paid")] == [other.id]
    assert [o.id for o in await order_ops.list_user_orders(db, "student-001")] == [mine.id]
    with pytest.raises(OrderNotFoundError):
        await order_ops.get_user_order(db, other.id, "student-001")
