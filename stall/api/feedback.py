"""
Stall Service — Feedback API

Customers rate an order once; staff can read any order's feedback.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stall.api.deps import caller_is_admin, current_user_id
from stall.core.errors import FeedbackExistsError, NotOrderOwnerError, OrderNotFoundError
from stall.db.database import get_db
from stall.db.feedback_ops import get_order_feedback, list_user_feedback, submit_feedback
from stall.db.order_ops import get_order
from stall.schemas.order import FeedbackRequest, FeedbackResponse

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def leave_feedback(
    payload: FeedbackRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await submit_feedback(db, user_id=user_id, **payload.model_dump())
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    except NotOrderOwnerError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    except FeedbackExistsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("", response_model=list[FeedbackResponse])
async def my_feedback(user_id: str = Depends(current_user_id), db: AsyncSession = Depends(get_db)):
    return await list_user_feedback(db, user_id)


@router.get("/order/{order_id}", response_model=FeedbackResponse)
async def order_feedback(
    order_id: str,
    user_id: str = Depends(current_user_id),
    is_admin: bool = Depends(caller_is_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        order = await get_order(db, order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found.")
    if order.user_id != user_id and not is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    feedback = await get_order_feedback(db, order_id)
    if feedback is None:
        raise HTTPException(status_code=404, detail="Feedback not found.")
    return feedback
