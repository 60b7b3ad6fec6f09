"""Pydantic schemas for order placement and order queries."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.common import MAX_ID, Pagination


# ── Placement ───────────────────────────────────────────────────────
class OrderLineIn(BaseModel):
    product_id: int = Field(ge=1, le=MAX_ID)
    quantity: int = Field(ge=1)


class OrderCreate(BaseModel):
    # emptiness is a business rule (400), not a shape error
    items: list[OrderLineIn]
    shipping_name: str | None = Field(default=None, max_length=120)
    shipping_addr: str | None = Field(default=None, max_length=300)
    shipping_city: str | None = Field(default=None, max_length=80)
    shipping_zip: str | None = Field(default=None, max_length=20)
    shipping_country: str | None = Field(default=None, max_length=80)
    notes: str | None = Field(default=None, max_length=2000)


class OrderItemRead(BaseModel):
    product_id: int
    product_name: str
    price: Decimal
    quantity: int
    subtotal: Decimal

    model_config = {"from_attributes": True}


class OrderPlaced(BaseModel):
    order_id: int
    order_number: str
    status: str
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    total: Decimal
    items: list[OrderItemRead]


# ── Queries ─────────────────────────────────────────────────────────
class OrderSummary(BaseModel):
    id: int
    order_number: str
    status: str
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    total: Decimal
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrderDetail(OrderSummary):
    shipping_name: str | None = None
    shipping_addr: str | None = None
    shipping_city: str | None = None
    shipping_zip: str | None = None
    shipping_country: str | None = None
    notes: str | None = None
    items: list[OrderItemRead] = []


class OrderList(BaseModel):
    orders: list[OrderSummary]
    pagination: Pagination


class AdminOrderSummary(BaseModel):
    id: int
    order_number: str
    status: str
    total: Decimal
    created_at: datetime | None = None
    first_name: str
    last_name: str
    email: str


class AdminOrderList(BaseModel):
    orders: list[AdminOrderSummary]
    pagination: Pagination


class OrderStatusUpdate(BaseModel):
    # membership in the closed set is checked by the service (400)
    status: str


class OrderStatusRead(BaseModel):
    id: int
    status: str
    previous_status: str
