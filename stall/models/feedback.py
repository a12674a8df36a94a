"""
Stall Service — Customer feedback

[TRANSACTIONAL DATA] feedback — at most one entry per order
"""
import uuid
from datetime import datetime
from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stall.db.database import Base


class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(36), unique=True, nullable=True)
    sentiment: Mapped[str] = mapped_column(String(8), nullable=False)    # positive | negative
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)   # 1..5
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
