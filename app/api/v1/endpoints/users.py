"""
End-user self-service: profile, password, account deactivation.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import client_ip, get_current_user, get_db
from app.db.session import transaction
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.user import ChangePasswordRequest, UserRead, UserUpdate
from app.services import auth_service
from app.services.principals import PrincipalKind

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=ApiResponse[UserRead])
async def read_me(current_user: User = Depends(get_current_user)) -> ApiResponse:
    return ApiResponse(data=UserRead.model_validate(current_user))


@router.patch("/me", response_model=ApiResponse[UserRead])
async def update_me(
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    async with transaction(db):
        current_user.first_name = body.first_name
        current_user.last_name = body.last_name
        current_user.phone = body.phone
    logger.info("User %s updated profile", current_user.id)
    return ApiResponse(message="Profile updated", data=UserRead.model_validate(current_user))


@router.post("/me/change-password", response_model=ApiResponse[None])
async def change_my_password(
    request: Request,
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Change password; every outstanding refresh token is revoked."""
    await auth_service.change_password(
        db,
        current_user,
        PrincipalKind.USER,
        body.current_password,
        body.new_password,
        client_ip(request),
    )
    return ApiResponse(message="Password changed. Please log in again.")


@router.delete("/me", response_model=ApiResponse[None])
async def deactivate_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    await auth_service.deactivate_self(db, current_user)
    return ApiResponse(message="Account deactivated")
