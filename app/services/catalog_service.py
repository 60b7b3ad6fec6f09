"""
Catalog reads and admin product maintenance.

Reads only ever expose active products; deletion is a soft delete.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, NotFoundError
from app.db.session import transaction
from app.models.admin import Admin
from app.models.catalog import Category, Product
from app.schemas.catalog import (CategoryRead, ProductCreate, ProductList,
                                 ProductRead, ProductUpdate)
from app.schemas.common import paginate
from app.services.audit_service import (ACTION_CREATE_PRODUCT,
                                        ACTION_DELETE_PRODUCT,
                                        ACTION_UPDATE_PRODUCT,
                                        record_admin_action)

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "rating": Product.rating,
    "review_count": Product.review_count,
    "created_at": Product.created_at,
}

DEFAULT_CATEGORIES = [
    ("Smartphones", "smartphones", "📱"),
    ("Laptops", "laptops", "💻"),
    ("Tablets", "tablets", "📱"),
    ("TVs", "tvs", "📺"),
    ("Audio", "audio", "🎧"),
    ("Wearables", "wearables", "⌚"),
    ("Home Appliances", "home-appliances", "🏠"),
    ("Gaming", "gaming", "🎮"),
    ("Cameras", "cameras", "📷"),
    ("Networking", "networking", "🌐"),
]


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _product_read(product: Product, category: Category) -> ProductRead:
    read = ProductRead.model_validate(product)
    read.category_name = category.name
    read.category_slug = category.slug
    return read


# ── Reads ───────────────────────────────────────────────────────────
async def list_products(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    category: str | None = None,
    search: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    sort: str = "created_at",
    order: str = "desc",
) -> ProductList:
    filters = [Product.is_active.is_(True)]
    if category:
        filters.append(Category.slug == category)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if min_price is not None:
        filters.append(Product.price >= min_price)
    if max_price is not None:
        filters.append(Product.price <= max_price)

    column = SORTABLE_COLUMNS.get(sort, Product.created_at)
    ordering = column.asc() if order.lower() == "asc" else column.desc()

    total = (
        await db.execute(
            select(func.count(Product.id))
            .join(Category, Category.id == Product.category_id)
            .where(*filters)
        )
    ).scalar_one()
    rows = (
        await db.execute(
            select(Product, Category)
            .join(Category, Category.id == Product.category_id)
            .where(*filters)
            .order_by(ordering, Product.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).all()
    products = [_product_read(product, cat) for product, cat in rows]
    return ProductList(products=products, pagination=paginate(total, page, limit))


async def get_product(db: AsyncSession, product_id: int) -> ProductRead:
    row = (
        await db.execute(
            select(Product, Category)
            .join(Category, Category.id == Product.category_id)
            .where(Product.id == product_id, Product.is_active.is_(True))
        )
    ).first()
    if row is None:
        raise NotFoundError("Product not found")
    return _product_read(*row)


async def list_categories(db: AsyncSession) -> list[CategoryRead]:
    rows = (
        await db.execute(
            select(Category, func.count(Product.id))
            .outerjoin(
                Product,
                (Product.category_id == Category.id) & Product.is_active.is_(True),
            )
            .where(Category.is_active.is_(True))
            .group_by(Category.id)
            .order_by(Category.name.asc())
        )
    ).all()
    return [
        CategoryRead(id=c.id, name=c.name, slug=c.slug, icon=c.icon, product_count=count)
        for c, count in rows
    ]


async def seed_categories(db: AsyncSession) -> int:
    """Insert any missing default categories; returns how many were added."""
    existing = set((await db.execute(select(Category.slug))).scalars().all())
    added = 0
    async with transaction(db):
        for name, slug, icon in DEFAULT_CATEGORIES:
            if slug not in existing:
                db.add(Category(name=name, slug=slug, icon=icon))
                added += 1
    return added


# ── Admin maintenance ───────────────────────────────────────────────
async def _require_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise BadRequestError(f"Category ID {category_id} does not exist")


async def create_product(
    db: AsyncSession,
    body: ProductCreate,
    admin: Admin,
    ip_address: str | None = None,
) -> ProductRead:
    async with transaction(db):
        await _require_category(db, body.category_id)
        product = Product(
            name=body.name,
            slug=slugify(body.name),
            description=body.description,
            category_id=body.category_id,
            price=body.price,
            stock=body.stock,
            icon=body.icon or "📦",
            image_url=body.image_url,
        )
        db.add(product)
        await db.flush()
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_CREATE_PRODUCT,
            entity="product",
            entity_id=product.id,
            ip_address=ip_address,
        )

    logger.info("Product %s (%s) created by admin %s", product.id, product.slug, admin.id)
    return await get_product(db, product.id)


async def update_product(
    db: AsyncSession,
    product_id: int,
    body: ProductUpdate,
    admin: Admin,
    ip_address: str | None = None,
) -> ProductRead:
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise BadRequestError("No fields to update")

    async with transaction(db):
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        if "category_id" in changes:
            await _require_category(db, changes["category_id"])

        for field, value in changes.items():
            setattr(product, field, value)
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_UPDATE_PRODUCT,
            entity="product",
            entity_id=product.id,
            details={"fields": sorted(changes)},
            ip_address=ip_address,
        )

    category = await db.get(Category, product.category_id)
    return _product_read(product, category)  # type: ignore[arg-type]


async def delete_product(
    db: AsyncSession,
    product_id: int,
    admin: Admin,
    ip_address: str | None = None,
) -> None:
    async with transaction(db):
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        product.is_active = False
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_DELETE_PRODUCT,
            entity="product",
            entity_id=product.id,
            ip_address=ip_address,
        )
    logger.info("Product %s soft-deleted by admin %s", product_id, admin.id)
