"""
Stall Service — Pydantic Schemas
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stall.core.slot_allocator import TimeSlot
from stall.models.order import Order


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., examples=["3f0c6f0e-karadon"])
    quantity: int = Field(..., ge=1, le=10)
    size: str | None = Field(None, max_length=20)
    customizations: list[str] = Field(default_factory=list, max_length=10)


class OrderRequest(BaseModel):
    time_slot_id: str
    payment_method: Literal["paypay"] = "paypay"
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=20)


class StatusChangeRequest(BaseModel):
    status: str


class PaymentCallback(BaseModel):
    # Anything else the gateway sends (its own status field included) is ignored
    merchant_payment_id: str                      # our order id


class PaymentCallbackResponse(BaseModel):
    order_id: str
    status: str
    changed: bool


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    price: int = Field(..., ge=0)                 # yen
    image: str = Field("", max_length=500)
    category: str = Field("rice-bowl", max_length=50)
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    price: int | None = Field(None, ge=0)
    image: str | None = Field(None, max_length=500)
    category: str | None = Field(None, max_length=50)
    is_active: bool | None = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    price: int
    image: str
    category: str
    is_active: bool


class FeedbackRequest(BaseModel):
    order_id: str | None = None
    sentiment: Literal["positive", "negative"]
    rating: int | None = Field(None, ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    order_id: str | None
    sentiment: str
    rating: int | None
    comment: str | None
    created_at: datetime | None = None


class StoreSettingsUpdate(BaseModel):
    accepting_orders: bool


class StoreSettingsResponse(BaseModel):
    accepting_orders: bool


class TimeSlotResponse(BaseModel):
    id: str
    time: str
    capacity: int
    available: int
    is_full: bool

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> "TimeSlotResponse":
        return cls(id=slot.id, time=slot.time, capacity=slot.capacity,
                   available=slot.available, is_full=slot.is_full)


class OrderResponse(BaseModel):
    id: str
    user_id: str
    call_number: int
    status: str
    total: int
    time_slot_id: str
    time_slot: str
    items: list[dict]
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_id=order.user_id,
            call_number=order.call_number,
            status=order.status,
            total=order.total,
            time_slot_id=order.time_slot_id,
            time_slot=order.time_slot_label,
            items=order.items,
            created_at=order.created_at,
        )


class StatusChangeResponse(OrderResponse):
    previous_status: str
    is_undo: bool
    changed: bool = True
