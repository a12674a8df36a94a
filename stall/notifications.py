"""
Stall Service — Order status notifications

Every applied status change is published to the Redis channel order:{id};
the customer's order tracker subscribes to it to know when to walk over to
the counter.
"""
import json
import logging

from stall.core.config import get_settings
from stall.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

CHANNEL = "order:{order_id}"


async def publish_status_change(order_id: str, status: str, user_id: str, call_number: int) -> None:
    if not settings.NOTIFICATIONS_ENABLED:
        return
    payload = {"order_id": order_id, "status": status, "user_id": user_id, "call_number": call_number}
    try:
        await get_redis().publish(CHANNEL.format(order_id=order_id), json.dumps(payload))
    except Exception as exc:
        # Notification failures MUST NOT affect order processing
        logger.warning("Status notification for order %s not delivered: %s", order_id, exc)
