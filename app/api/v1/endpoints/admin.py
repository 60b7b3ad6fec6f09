"""
Back-office endpoints.

- /admin/me and /admin/2fa/* require any live admin.
- /admin/users* require the ``users`` permission.
- /admin/orders* require the ``orders`` permission.
- /admin/dashboard requires the ``reports`` permission.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (client_ip, get_current_admin, get_db,
                             require_permission)
from app.models.admin import Admin
from app.schemas.common import MAX_ID, ApiResponse
from app.schemas.dashboard import DashboardRead
from app.schemas.order import AdminOrderList, OrderStatusRead, OrderStatusUpdate
from app.schemas.user import (AdminRead, AdminUserDetail, AdminUserList,
                              ChangePasswordRequest, TwoFactorEnableRequest,
                              TwoFactorSetupRead, UserStatusRead)
from app.services import admin_service, auth_service, order_service
from app.services.principals import PrincipalKind

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Own account ─────────────────────────────────────────────────────
@router.get("/me", response_model=ApiResponse[AdminRead])
async def read_me(admin: Admin = Depends(get_current_admin)) -> ApiResponse:
    return ApiResponse(data=AdminRead.model_validate(admin))


@router.post("/me/change-password", response_model=ApiResponse[None])
async def change_my_password(
    request: Request,
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse:
    await auth_service.change_password(
        db,
        admin,
        PrincipalKind.ADMIN,
        body.current_password,
        body.new_password,
        client_ip(request),
    )
    return ApiResponse(message="Password changed. Please log in again.")


@router.post("/2fa/setup", response_model=ApiResponse[TwoFactorSetupRead])
async def setup_two_factor(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse:
    """Generate a new TOTP secret. 2FA stays off until /2fa/enable succeeds."""
    setup = await auth_service.setup_two_factor(db, admin)
    return ApiResponse(message="Scan the QR code with your authenticator app", data=setup)


@router.post("/2fa/enable", response_model=ApiResponse[None])
async def enable_two_factor(
    request: Request,
    body: TwoFactorEnableRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse:
    await auth_service.enable_two_factor(db, admin, body.code, client_ip(request))
    return ApiResponse(message="2FA enabled successfully")


# ── Dashboard ───────────────────────────────────────────────────────
@router.get("/dashboard", response_model=ApiResponse[DashboardRead])
async def dashboard(
    db: AsyncSession = Depends(get_db),
    _admin: Admin = Depends(require_permission("reports")),
) -> ApiResponse:
    return ApiResponse(data=await admin_service.get_dashboard(db))


# ── Customers ───────────────────────────────────────────────────────
@router.get("/users", response_model=ApiResponse[AdminUserList])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    _admin: Admin = Depends(require_permission("users")),
) -> ApiResponse:
    users, pagination = await admin_service.list_users(
        db, page=page, limit=limit, search=search, is_active=is_active
    )
    return ApiResponse(data=AdminUserList(users=users, pagination=pagination))


@router.get("/users/{user_id}", response_model=ApiResponse[AdminUserDetail])
async def get_user(
    user_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    _admin: Admin = Depends(require_permission("users")),
) -> ApiResponse:
    user, recent_orders = await admin_service.get_user_detail(db, user_id)
    return ApiResponse(data=AdminUserDetail(user=user, recent_orders=recent_orders))


@router.patch("/users/{user_id}/toggle", response_model=ApiResponse[UserStatusRead])
async def toggle_user(
    request: Request,
    user_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("users")),
) -> ApiResponse:
    result = await admin_service.toggle_user_status(db, user_id, admin, client_ip(request))
    verb = "activated" if result.is_active else "deactivated"
    return ApiResponse(message=f"User {verb}", data=result)


@router.delete("/users/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    request: Request,
    user_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("users")),
) -> ApiResponse:
    await admin_service.delete_user(db, user_id, admin, client_ip(request))
    return ApiResponse(message="User deleted")


# ── Orders ──────────────────────────────────────────────────────────
@router.get("/orders", response_model=ApiResponse[AdminOrderList])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _admin: Admin = Depends(require_permission("orders")),
) -> ApiResponse:
    orders = await order_service.admin_list_orders(db, page, limit, status=status, search=search)
    return ApiResponse(data=orders)


@router.patch("/orders/{order_id}/status", response_model=ApiResponse[OrderStatusRead])
async def update_order_status(
    request: Request,
    body: OrderStatusUpdate,
    order_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(require_permission("orders")),
) -> ApiResponse:
    result = await order_service.update_order_status(
        db, order_id, body.status, admin, client_ip(request)
    )
    return ApiResponse(message="Order status updated", data=result)
