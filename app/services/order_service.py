"""
Order placement and order queries.

Placement is all-or-nothing: every cart line is validated against live
stock and price, the order row, its line items and the stock decrements
are written in one transaction, and any failure rolls all of it back.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import BadRequestError, NotFoundError
from app.db.session import transaction
from app.models.admin import Admin
from app.models.catalog import Product
from app.models.order import ORDER_STATUSES, Order, OrderItem
from app.models.user import User
from app.schemas.common import paginate
from app.schemas.order import (AdminOrderList, AdminOrderSummary, OrderCreate,
                               OrderItemRead, OrderList, OrderPlaced,
                               OrderStatusRead, OrderSummary)
from app.services.audit_service import (ACTION_UPDATE_ORDER_STATUS,
                                        record_admin_action)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_BASE36 = string.digits + string.ascii_uppercase


# ── Pricing ─────────────────────────────────────────────────────────
@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    total: Decimal


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_totals(subtotal: Decimal) -> OrderTotals:
    """Derive tax, shipping and total from *subtotal*.

    Each derived field is rounded once from exact inputs, never from an
    already-rounded intermediate.
    """
    tax = _round_money(subtotal * settings.TAX_RATE)
    shipping_fee = Decimal("0.00") if subtotal >= settings.FREE_SHIPPING_THRESHOLD else settings.FLAT_SHIPPING_FEE
    total = _round_money(subtotal + tax + shipping_fee)
    return OrderTotals(
        subtotal=_round_money(subtotal),
        tax=tax,
        shipping_fee=_round_money(shipping_fee),
        total=total,
    )


# ── Order numbers ───────────────────────────────────────────────────
def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_order_number() -> str:
    """``ORD-<ms timestamp, base36>-<4 random chars>``; uniqueness is the store's job."""
    stamp = _to_base36(int(time.time() * 1000))
    rand = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"ORD-{stamp}-{rand}"


async def _unused_order_number(db: AsyncSession) -> str:
    for _ in range(max(settings.ORDER_NUMBER_ATTEMPTS, 1)):
        candidate = generate_order_number()
        taken = await db.execute(select(Order.id).where(Order.order_number == candidate))
        if taken.scalar_one_or_none() is None:
            return candidate
        logger.warning("Order number collision on %s, regenerating", candidate)
    # give up probing; the unique constraint still guards the insert (409)
    return candidate


# ── Placement ───────────────────────────────────────────────────────
async def place_order(db: AsyncSession, user_id: int, body: OrderCreate) -> OrderPlaced:
    if not body.items:
        raise BadRequestError("Order must contain at least one item")

    async with transaction(db):
        # lock every distinct product in id order so concurrent carts
        # acquire row locks in the same sequence
        result = await db.execute(
            select(Product)
            .where(
                Product.id.in_({item.product_id for item in body.items}),
                Product.is_active.is_(True),
            )
            .order_by(Product.id)
            .with_for_update()
        )
        locked = {product.id: product for product in result.scalars().all()}

        requested: dict[int, int] = defaultdict(int)
        lines: list[tuple[Product, int, Decimal]] = []
        subtotal = Decimal("0")

        for item in body.items:
            product = locked.get(item.product_id)
            if product is None:
                raise NotFoundError(f"Product ID {item.product_id} not found")

            # a product may appear on several lines; check the running total
            requested[product.id] += item.quantity
            if requested[product.id] > product.stock:
                raise BadRequestError(
                    f'Insufficient stock for "{product.name}" (available: {product.stock})'
                )

            line_subtotal = Decimal(product.price) * item.quantity
            subtotal += line_subtotal
            lines.append((product, item.quantity, line_subtotal))

        totals = compute_totals(subtotal)
        order = Order(
            order_number=await _unused_order_number(db),
            user_id=user_id,
            status="pending",
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_fee=totals.shipping_fee,
            total=totals.total,
            shipping_name=body.shipping_name,
            shipping_addr=body.shipping_addr,
            shipping_city=body.shipping_city,
            shipping_zip=body.shipping_zip,
            shipping_country=body.shipping_country,
            notes=body.notes,
        )
        db.add(order)
        await db.flush()

        items: list[OrderItemRead] = []
        for product, quantity, line_subtotal in lines:
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    product_name=product.name,
                    price=product.price,
                    quantity=quantity,
                    subtotal=line_subtotal,
                )
            )
            decremented = await db.execute(
                update(Product)
                .where(Product.id == product.id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False)
            )
            if decremented.rowcount != 1:
                raise BadRequestError(f'Insufficient stock for "{product.name}"')
            items.append(
                OrderItemRead(
                    product_id=product.id,
                    product_name=product.name,
                    price=product.price,
                    quantity=quantity,
                    subtotal=_round_money(line_subtotal),
                )
            )

    logger.info(
        "Order %s placed by user %s: %d line(s), total %s",
        order.order_number,
        user_id,
        len(items),
        totals.total,
    )
    return OrderPlaced(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        subtotal=totals.subtotal,
        tax=totals.tax,
        shipping_fee=totals.shipping_fee,
        total=totals.total,
        items=items,
    )


# ── Customer queries ────────────────────────────────────────────────
async def list_user_orders(db: AsyncSession, user_id: int, page: int, limit: int) -> OrderList:
    total = (
        await db.execute(select(func.count(Order.id)).where(Order.user_id == user_id))
    ).scalar_one()
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    orders = [OrderSummary.model_validate(o) for o in result.scalars().all()]
    return OrderList(orders=orders, pagination=paginate(total, page, limit))


async def get_user_order(db: AsyncSession, user_id: int, order_id: int) -> Order:
    """Fetch one of *user_id*'s orders; other users' orders are reported as missing."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id, Order.user_id == user_id)
        .options(selectinload(Order.items))
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


# ── Admin ───────────────────────────────────────────────────────────
async def admin_list_orders(
    db: AsyncSession,
    page: int,
    limit: int,
    status: str | None = None,
    search: str | None = None,
) -> AdminOrderList:
    filters = []
    if status:
        filters.append(Order.status == status)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Order.order_number.ilike(pattern), User.email.ilike(pattern)))

    total = (
        await db.execute(
            select(func.count(Order.id)).join(User, User.id == Order.user_id).where(*filters)
        )
    ).scalar_one()
    rows = (
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
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).all()
    orders = [AdminOrderSummary(**row._mapping) for row in rows]
    return AdminOrderList(orders=orders, pagination=paginate(total, page, limit))


async def update_order_status(
    db: AsyncSession,
    order_id: int,
    status: str,
    admin: Admin,
    ip_address: str | None = None,
) -> OrderStatusRead:
    """Overwrite an order's status; any status may follow any other."""
    if status not in ORDER_STATUSES:
        raise BadRequestError("Invalid status value")

    async with transaction(db):
        order = await db.get(Order, order_id, with_for_update=True)
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.status
        order.status = status
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_UPDATE_ORDER_STATUS,
            entity="order",
            entity_id=order.id,
            details={"from": previous, "to": status},
            ip_address=ip_address,
        )

    logger.info("Order %s status %s -> %s by admin %s", order.order_number, previous, status, admin.id)
    return OrderStatusRead(id=order.id, status=status, previous_status=previous)
