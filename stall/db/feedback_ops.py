"""
Stall Service — Feedback operations
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stall.core.errors import FeedbackExistsError, NotOrderOwnerError
from stall.db.order_ops import get_order
from stall.models.feedback import Feedback

logger = logging.getLogger(__name__)


async def submit_feedback(
    db: AsyncSession,
    user_id: str,
    sentiment: str,
    order_id: str | None = None,
    rating: int | None = None,
    comment: str | None = None,
) -> Feedback:
    """
    Record feedback, optionally tied to one of the caller's orders.
    An order takes at most one feedback entry.
    """
    if order_id is not None:
        order = await get_order(db, order_id)
        if order.user_id != user_id:
            raise NotOrderOwnerError(order_id)
        if await get_order_feedback(db, order_id) is not None:
            raise FeedbackExistsError(order_id)

    feedback = Feedback(user_id=user_id, order_id=order_id, sentiment=sentiment, rating=rating, comment=comment)
    db.add(feedback)
    try:
        await db.commit()
    except IntegrityError:
        # Two submissions for the same order raced past the check above
        await db.rollback()
        raise FeedbackExistsError(order_id)
    await db.refresh(feedback)
    logger.info("Feedback %s from %s (%s, rating=%s)", feedback.id, user_id, sentiment, rating)
    return feedback


async def list_user_feedback(db: AsyncSession, user_id: str) -> list[Feedback]:
    result = await db.execute(
        select(Feedback).where(Feedback.user_id == user_id).order_by(Feedback.created_at.desc())
    )
    return list(result.scalars().all())


async def get_order_feedback(db: AsyncSession, order_id: str) -> Feedback | None:
    result = await db.execute(select(Feedback).where(Feedback.order_id == order_id))
    return result.scalar_one_or_none()
