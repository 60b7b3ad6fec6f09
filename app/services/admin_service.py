"""
Back-office operations: customer management and the dashboard.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.db.session import transaction
from app.models.admin import Admin
from app.models.catalog import Product
from app.models.order import Order
from app.models.user import User
from app.schemas.common import Pagination, paginate
from app.schemas.dashboard import (DashboardRead, DashboardStats,
                                   MonthlyRevenue, RecentOrder)
from app.schemas.order import OrderSummary
from app.schemas.user import AdminUserSummary, UserRead, UserStatusRead
from app.services.audit_service import (ACTION_ACTIVATE_USER,
                                        ACTION_DEACTIVATE_USER,
                                        ACTION_DELETE_USER,
                                        record_admin_action)
from app.services.auth_service import revoke_all_refresh_tokens
from app.services.principals import PrincipalKind

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10
_NON_REVENUE_STATUSES = ("cancelled", "refunded")


# ── Customers ───────────────────────────────────────────────────────
async def list_users(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    search: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[AdminUserSummary], Pagination]:
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))

    total = (await db.execute(select(func.count(User.id)).where(*filters))).scalar_one()
    rows = (
        await db.execute(
            select(
                User,
                func.count(Order.id),
                func.coalesce(func.sum(Order.total), 0),
            )
            .outerjoin(Order, Order.user_id == User.id)
            .where(*filters)
            .group_by(User.id)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).all()

    users = []
    for user, order_count, spent in rows:
        summary = AdminUserSummary.model_validate(user)
        summary.total_orders = order_count
        summary.total_spent = Decimal(str(spent)).quantize(Decimal("0.01"))
        users.append(summary)
    return users, paginate(total, page, limit)


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_detail(db: AsyncSession, user_id: int) -> tuple[UserRead, list[OrderSummary]]:
    user = await _get_user(db, user_id)
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(5)
    )
    recent = [OrderSummary.model_validate(o) for o in result.scalars().all()]
    return UserRead.model_validate(user), recent


async def toggle_user_status(
    db: AsyncSession,
    user_id: int,
    admin: Admin,
    ip_address: str | None = None,
) -> UserStatusRead:
    async with transaction(db):
        user = await _get_user(db, user_id)
        user.is_active = not user.is_active
        if not user.is_active:
            await revoke_all_refresh_tokens(db, user.id, PrincipalKind.USER)
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_ACTIVATE_USER if user.is_active else ACTION_DEACTIVATE_USER,
            entity="user",
            entity_id=user.id,
            ip_address=ip_address,
        )
    logger.info("User %s active=%s set by admin %s", user.id, user.is_active, admin.id)
    return UserStatusRead(id=user.id, is_active=user.is_active)


async def delete_user(
    db: AsyncSession,
    user_id: int,
    admin: Admin,
    ip_address: str | None = None,
) -> None:
    """Soft delete: users are deactivated, never removed."""
    async with transaction(db):
        user = await _get_user(db, user_id)
        user.is_active = False
        await revoke_all_refresh_tokens(db, user.id, PrincipalKind.USER)
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_DELETE_USER,
            entity="user",
            entity_id=user.id,
            ip_address=ip_address,
        )
    logger.info("User %s deleted (deactivated) by admin %s", user_id, admin.id)


# ── Dashboard ───────────────────────────────────────────────────────
def _month_keys(now: datetime, months: int) -> list[str]:
    keys = []
    year, month = now.year, now.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


async def get_dashboard(db: AsyncSession, months: int = 6) -> DashboardRead:
    async def _scalar(stmt) -> int | Decimal:
        return (await db.execute(stmt)).scalar_one()

    revenue_filter = Order.status.not_in(_NON_REVENUE_STATUSES)
    stats = DashboardStats(
        total_users=await _scalar(select(func.count(User.id)).where(User.is_active.is_(True))),
        total_products=await _scalar(select(func.count(Product.id)).where(Product.is_active.is_(True))),
        total_orders=await _scalar(select(func.count(Order.id))),
        total_revenue=Decimal(
            str(await _scalar(select(func.coalesce(func.sum(Order.total), 0)).where(revenue_filter)))
        ).quantize(Decimal("0.01")),
        pending_orders=await _scalar(select(func.count(Order.id)).where(Order.status == "pending")),
        low_stock=await _scalar(
            select(func.count(Product.id)).where(
                Product.stock < LOW_STOCK_THRESHOLD, Product.is_active.is_(True)
            )
        ),
    )

    recent_rows = (
        await db.execute(
            select(
                Order.id,
                Order.order_number,
                Order.status,
                Order.total,
                Order.created_at,
                User.first_name,
                User.last_name,
                User.email,
            )
            .join(User, User.id == Order.user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(5)
        )
    ).all()
    recent_orders = [RecentOrder(**row._mapping) for row in recent_rows]

    # One query for the window, bucketed by month in Python (portable across dialects).
    now = datetime.now(timezone.utc)
    keys = _month_keys(now, months)
    buckets: OrderedDict[str, list] = OrderedDict((k, [Decimal("0.00"), 0]) for k in keys)
    since = datetime(int(keys[0][:4]), int(keys[0][5:]), 1, tzinfo=timezone.utc)
    window = await db.execute(
        select(Order.created_at, Order.total).where(Order.created_at >= since, revenue_filter)
    )
    for created_at, total in window.all():
        key = created_at.strftime("%Y-%m")
        if key in buckets:
            buckets[key][0] += Decimal(total)
            buckets[key][1] += 1
    monthly = [
        MonthlyRevenue(month=k, revenue=v[0], orders=v[1])
        for k, v in buckets.items()
        if v[1]
    ]

    return DashboardRead(stats=stats, recent_orders=recent_orders, monthly_revenue=monthly)
