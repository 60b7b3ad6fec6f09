"""Pydantic schemas for user / admin profiles (hash-stripped views)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import Pagination
from app.schemas.order import OrderSummary
from app.schemas.validators import (check_password_strength, required_name,
                                    totp_code)


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    is_active: bool = True
    last_login: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    first_name: str
    last_name: str
    phone: str | None = Field(default=None, max_length=20)

    @field_validator("first_name", "last_name")
    @classmethod
    def _names(cls, v: str) -> str:
        return required_name(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _strength(cls, v: str) -> str:
        return check_password_strength(v)


class AdminRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    department: str | None = None
    access_level: str
    perm_products: bool
    perm_orders: bool
    perm_users: bool
    perm_reports: bool
    is_active: bool = True
    two_fa_enabled: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TwoFactorSetupRead(BaseModel):
    secret: str
    provisioning_uri: str


class TwoFactorEnableRequest(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return totp_code(v)


# ── Admin user management ───────────────────────────────────────────
class AdminUserSummary(UserRead):
    total_orders: int = 0
    total_spent: Decimal = Decimal("0.00")


class AdminUserList(BaseModel):
    users: list[AdminUserSummary]
    pagination: Pagination


class AdminUserDetail(BaseModel):
    user: UserRead
    recent_orders: list[OrderSummary]


class UserStatusRead(BaseModel):
    id: int
    is_active: bool
