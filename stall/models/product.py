"""
Stall Service — Menu models

[CONFIG DATA] products — the menu customers order from; prices live here only
"""
import uuid
from datetime import datetime
from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stall.db.database import Base


class Product(Base):
    """
    [CONFIG DATA] — one row per menu item.
    Orders copy name and price at checkout, so editing a product never
    rewrites what an earlier customer paid.
    """
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # in yen
    image: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="rice-bowl")
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name} price={self.price}>"
