"""
Catalog tests: public browsing and permission-gated product maintenance.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditEntry
from app.models.catalog import Category
from app.services.catalog_service import DEFAULT_CATEGORIES, seed_categories, slugify


def test_slugify():
    assert slugify("  Sony WH-1000XM5 Headphones! ") == "sony-wh-1000xm5-headphones"


@pytest.mark.asyncio
async def test_seed_categories_is_idempotent(db_session: AsyncSession):
    assert await seed_categories(db_session) == len(DEFAULT_CATEGORIES)
    assert await seed_categories(db_session) == 0
    assert await db_session.scalar(select(func.count(Category.id))) == len(DEFAULT_CATEGORIES)


# ── Public reads ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_list_products_filters_and_sorts(async_client: AsyncClient, make_product):
    await make_product("Budget Phone", price="99.00")
    await make_product("Flagship Phone", price="999.00")
    await make_product("Hidden Phone", price="10.00", is_active=False)

    resp = await async_client.get("/api/v1/products?sort=price&order=asc")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [p["name"] for p in data["products"]] == ["Budget Phone", "Flagship Phone"]
    assert data["pagination"]["total"] == 2
    assert data["products"][0]["category_slug"] == "laptops"

    resp = await async_client.get("/api/v1/products?min_price=100")
    assert [p["name"] for p in resp.json()["data"]["products"]] == ["Flagship Phone"]

    resp = await async_client.get("/api/v1/products?search=budget")
    assert [p["name"] for p in resp.json()["data"]["products"]] == ["Budget Phone"]

    resp = await async_client.get("/api/v1/products?category=tvs")
    assert resp.json()["data"]["products"] == []


@pytest.mark.asyncio
async def test_unknown_sort_column_falls_back(async_client: AsyncClient, make_product):
    await make_product()
    resp = await async_client.get("/api/v1/products?sort=hashed_password")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_get_product(async_client: AsyncClient, make_product):
    product = await make_product(price="12.50")
    resp = await async_client.get(f"/api/v1/products/{product.id}")
    assert resp.status_code == 200
    assert Decimal(resp.json()["data"]["price"]) == Decimal("12.50")

    assert (await async_client.get("/api/v1/products/9999")).status_code == 404


@pytest.mark.asyncio
async def test_categories_count_active_products(async_client: AsyncClient, make_product):
    await make_product("A")
    await make_product("B", is_active=False)
    resp = await async_client.get("/api/v1/products/categories")
    assert resp.status_code == 200
    assert resp.json()["data"] == [
        {"id": 1, "name": "Laptops", "slug": "laptops", "icon": "💻", "product_count": 1}
    ]


# ── Admin maintenance ───────────────────────────────────────────────
@pytest.mark.asyncio
async def test_product_lifecycle(
    async_client: AsyncClient, make_admin, category, auth_headers, db_session: AsyncSession
):
    admin = await make_admin()
    headers = auth_headers(admin)

    created = await async_client.post(
        "/api/v1/products",
        json={"name": "Galaxy Tab S9", "category_id": category.id, "price": "649.99", "stock": 7},
        headers=headers,
    )
    assert created.status_code == 201
    product = created.json()["data"]
    assert product["slug"] == "galaxy-tab-s9"

    updated = await async_client.put(
        f"/api/v1/products/{product['id']}", json={"stock": 3}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["stock"] == 3

    empty = await async_client.put(f"/api/v1/products/{product['id']}", json={}, headers=headers)
    assert empty.status_code == 400

    deleted = await async_client.delete(f"/api/v1/products/{product['id']}", headers=headers)
    assert deleted.status_code == 200
    assert (await async_client.get(f"/api/v1/products/{product['id']}")).status_code == 404

    actions = (
        await db_session.execute(select(AuditEntry.action).order_by(AuditEntry.id))
    ).scalars().all()
    assert actions == ["CREATE_PRODUCT", "UPDATE_PRODUCT", "DELETE_PRODUCT"]


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "price", "stock", "category_id", "is_active"])
async def test_update_rejects_null_for_required_fields(
    async_client: AsyncClient, make_admin, make_product, auth_headers, db_session: AsyncSession, field
):
    admin = await make_admin()
    product = await make_product(price="120.00", stock=6)

    resp = await async_client.put(
        f"/api/v1/products/{product.id}", json={field: None}, headers=auth_headers(admin)
    )
    assert resp.status_code == 422

    await db_session.refresh(product)
    assert product.price == Decimal("120.00")
    assert product.stock == 6


@pytest.mark.asyncio
async def test_create_product_unknown_category(async_client: AsyncClient, make_admin, auth_headers):
    admin = await make_admin()
    resp = await async_client.post(
        "/api/v1/products",
        json={"name": "Orphan", "category_id": 42, "price": "1.00"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_product_maintenance_requires_permission(
    async_client: AsyncClient, make_admin, make_user, category, auth_headers
):
    body = {"name": "Nope", "category_id": category.id, "price": "1.00"}

    resp = await async_client.post("/api/v1/products", json=body)
    assert resp.status_code == 401

    user = await make_user()
    resp = await async_client.post("/api/v1/products", json=body, headers=auth_headers(user))
    assert resp.status_code == 403

    admin = await make_admin(products=False)
    resp = await async_client.post("/api/v1/products", json=body, headers=auth_headers(admin))
    assert resp.status_code == 403
