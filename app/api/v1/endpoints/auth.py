"""
Auth endpoints — registration, login + 2FA step-up, token rotation, logout.

Both principal kinds share these routes; the request names the kind.
"""

from typing import Union

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import client_ip, get_db
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.auth import (AdminSession, LoginRequest, LogoutRequest,
                              RefreshRequest, RegisterRequest, TokenPair,
                              TwoFactorChallenge, UserSession,
                              VerifyTwoFactorRequest)
from app.schemas.common import ApiResponse
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=ApiResponse[Union[UserSession, AdminSession]],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """Create a user or (with an invitation code) an admin and open a session."""
    session = await auth_service.register(db, body)
    return ApiResponse(message="Account created successfully", data=session)


@router.post(
    "/login",
    response_model=ApiResponse[Union[TwoFactorChallenge, UserSession, AdminSession]],
)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """Step 1: email + password. Admins with 2FA get a challenge instead of tokens."""
    result = await auth_service.login(db, body.kind, body.email, body.password, client_ip(request))
    if isinstance(result, TwoFactorChallenge):
        return ApiResponse(message="Please enter your 2FA code", data=result)
    return ApiResponse(message="Login successful", data=result)


@router.post("/verify-2fa", response_model=ApiResponse[AdminSession])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def verify_two_factor(
    request: Request,
    body: VerifyTwoFactorRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """Step 2: exchange the challenge token + TOTP code for a session."""
    session = await auth_service.verify_second_factor(db, body.temp_token, body.code)
    return ApiResponse(message="2FA verified. Login successful.", data=session)


@router.post("/refresh", response_model=ApiResponse[TokenPair])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def refresh(
    request: Request,
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """Rotate a refresh token; the presented token is consumed."""
    tokens = await auth_service.refresh(db, body.refresh_token, body.kind)
    return ApiResponse(data=tokens)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """Revoke the given refresh token. Always succeeds."""
    await auth_service.logout(db, body.refresh_token)
    return ApiResponse(message="Logged out successfully")
