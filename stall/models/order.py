"""
Stall Service — Database models

[TRANSACTIONAL DATA] orders, status_change_log, call_number_sequence
[CONFIG DATA]        store_settings
"""
import uuid
from datetime import datetime
from sqlalchemy import JSON, Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stall.core.call_number import transform_call_number
from stall.core.order_status import OrderStatus
from stall.db.database import Base


class Order(Base):
    """
    [TRANSACTIONAL DATA]
    version_id is the optimistic locking column — incremented on every status change.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    call_seq: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default=OrderStatus.PENDING.value)
    total: Mapped[int] = mapped_column(Integer, nullable=False)  # in yen
    time_slot_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    time_slot_label: Mapped[str] = mapped_column(String(8), nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def call_number(self) -> int:
        return transform_call_number(self.call_seq)

    def __repr__(self) -> str:
        return f"<Order id={self.id} call={self.call_number} status={self.status}>"


class CallNumberSequence(Base):
    """
    [TRANSACTIONAL DATA] — one row per issued call number.
    The autoincrement id is the raw counter fed to transform_call_number.
    """
    __tablename__ = "call_number_sequence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StatusChangeLog(Base):
    """
    [TRANSACTIONAL DATA] — audit trail for every applied status change,
    including manual corrections (is_undo).
    """
    __tablename__ = "status_change_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    from_status: Mapped[str] = mapped_column(String(16), nullable=False)
    to_status: Mapped[str] = mapped_column(String(16), nullable=False)
    is_undo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    actor: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StoreSetting(Base):
    """
    [CONFIG DATA] — single row; staff can pause new orders during a rush.
    """
    __tablename__ = "store_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    accepting_orders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
