"""Pydantic schemas for categories and products."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import MAX_ID, Pagination


class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str
    icon: str | None = None
    product_count: int = 0

    model_config = {"from_attributes": True}


class ProductRead(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    category_id: int
    category_name: str | None = None
    category_slug: str | None = None
    price: Decimal
    stock: int
    icon: str | None = None
    image_url: str | None = None
    rating: Decimal = Decimal("0.00")
    review_count: int = 0
    is_active: bool = True
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProductList(BaseModel):
    products: list[ProductRead]
    pagination: Pagination


class ProductCreate(BaseModel):
    name: str
    category_id: int = Field(ge=1, le=MAX_ID)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0, le=MAX_ID)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=10)
    image_url: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        if len(v) > 200:
            raise ValueError("Product name must not exceed 200 characters")
        return v


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category_id: int | None = Field(default=None, ge=1, le=MAX_ID)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(default=None, ge=0, le=MAX_ID)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=10)
    image_url: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None

    @field_validator("name", "category_id", "price", "stock", "is_active", mode="before")
    @classmethod
    def _not_null(cls, v):
        # omit a field to leave it unchanged; these columns are NOT NULL
        if v is None:
            raise ValueError("Field may be omitted but not set to null")
        return v
