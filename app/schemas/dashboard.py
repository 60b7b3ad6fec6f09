"""Pydantic schemas for the admin dashboard."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_users: int
    total_products: int
    total_orders: int
    total_revenue: Decimal
    pending_orders: int
    low_stock: int


class RecentOrder(BaseModel):
    id: int
    order_number: str
    status: str
    total: Decimal
    created_at: datetime | None = None
    first_name: str
    last_name: str
    email: str


class MonthlyRevenue(BaseModel):
    month: str
    revenue: Decimal
    orders: int


class DashboardRead(BaseModel):
    stats: DashboardStats
    recent_orders: list[RecentOrder]
    monthly_revenue: list[MonthlyRevenue]
