"""
Catalog endpoints.

- GET operations are public.
- POST / PUT / DELETE require an admin holding the ``products`` permission.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import client_ip, get_db, require_permission
from app.models.admin import Admin
from app.schemas.catalog import (CategoryRead, ProductCreate, ProductList,
                                 ProductRead, ProductUpdate)
from app.schemas.common import MAX_ID, ApiResponse
from app.services import catalog_service

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ApiResponse[ProductList])
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = Query(None, description="Category slug"),
    search: Optional[str] = Query(None, max_length=100),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: str = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    products = await catalog_service.list_products(
        db,
        page=page,
        limit=limit,
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        order=order,
    )
    return ApiResponse(data=products)


@router.get("/categories", response_model=ApiResponse[list[CategoryRead]])
async def list_categories(db: AsyncSession = Depends(get_db)) -> ApiResponse:
    return ApiResponse(data=await catalog_service.list_categories(db))


@router.get("/{product_id}", response_model=ApiResponse[ProductRead])
async def get_product(
    product_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    return ApiResponse(data=await catalog_service.get_product(db, product_id))


@router.post(
    "",
    response_model=ApiResponse[ProductRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    request: Request,
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("products")),
) -> ApiResponse:
    product = await catalog_service.create_product(db, body, admin, client_ip(request))
    return ApiResponse(message="Product created", data=product)


@router.put("/{product_id}", response_model=ApiResponse[ProductRead])
async def update_product(
    request: Request,
    body: ProductUpdate,
    product_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("products")),
) -> ApiResponse:
    product = await catalog_service.update_product(db, product_id, body, admin, client_ip(request))
    return ApiResponse(message="Product updated", data=product)


@router.delete("/{product_id}", response_model=ApiResponse[None])
async def delete_product(
    request: Request,
    product_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("products")),
) -> ApiResponse:
    """Soft delete: the product is hidden from the catalog, order history keeps it."""
    await catalog_service.delete_product(db, product_id, admin, client_ip(request))
    return ApiResponse(message="Product deleted")
