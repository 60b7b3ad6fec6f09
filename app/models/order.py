"""
Order & OrderItem models.

Financial columns and line items are written once, at placement; only
``status`` changes afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, Numeric, String,
                        Text)
from sqlalchemy.orm import relationship

from app.db.base import Base

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
)


class Order(Base):
    __tablename__ = "orders"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    order_number: str = Column(String(30), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="pending",
        server_default="pending",
        index=True,
    )

    # Pricing
    subtotal: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]
    tax: Decimal = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))  # type: ignore[assignment]
    shipping_fee: Decimal = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))  # type: ignore[assignment]
    total: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]

    # Shipping snapshot (independent of the user's current address)
    shipping_name: str | None = Column(String(120), nullable=True)  # type: ignore[assignment]
    shipping_addr: str | None = Column(String(300), nullable=True)  # type: ignore[assignment]
    shipping_city: str | None = Column(String(80), nullable=True)  # type: ignore[assignment]
    shipping_zip: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    shipping_country: str | None = Column(String(80), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    order_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)  # type: ignore[assignment]

    # Snapshot of product at time of order
    product_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    price: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    subtotal: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]

    order = relationship("Order", back_populates="items")
