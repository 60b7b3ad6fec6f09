"""
Catalog models — categories and products.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (Boolean, CheckConstraint, Column, DateTime, ForeignKey,
                        Integer, Numeric, String, Text)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Category(Base):
    __tablename__ = "categories"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(100), unique=True, nullable=False)  # type: ignore[assignment]
    slug: str = Column(String(110), unique=True, nullable=False)  # type: ignore[assignment]
    icon: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    slug: str = Column(String(220), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    category_id: int = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)  # type: ignore[assignment]
    price: Decimal = Column(Numeric(10, 2), nullable=False, index=True)  # type: ignore[assignment]
    stock: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    icon: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    image_url: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    rating: Decimal = Column(Numeric(3, 2), nullable=False, default=Decimal("0.00"))  # type: ignore[assignment]
    review_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true", index=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    category = relationship("Category", back_populates="products")
