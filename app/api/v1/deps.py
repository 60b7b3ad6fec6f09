"""
FastAPI dependencies — database session and auth guards.

Access tokens cannot be revoked, so every protected call re-loads the
principal and re-checks its active flag.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import decode_access_token
from app.db.session import async_session_factory
from app.models.admin import PERMISSIONS, Admin, AdminRole
from app.models.user import User
from app.services.principals import Principal, PrincipalKind, get_principal

# auto_error=False so a missing token produces our own envelope, not FastAPI's
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


# ── Auth dependencies ───────────────────────────────────────────────
async def _authenticate(
    request: Request,
    token: Optional[str],
    db: AsyncSession,
    expected: PrincipalKind,
) -> Principal:
    if not token:
        raise UnauthorizedError(
            "Admin access token required" if expected is PrincipalKind.ADMIN else "Access token required"
        )

    payload = decode_access_token(token)
    if payload["kind"] != expected.value:
        raise ForbiddenError(f"{expected.value.capitalize()} token required")

    principal = await get_principal(db, expected, int(payload["sub"]))
    if principal is None or not principal.is_active:
        raise UnauthorizedError("Account not found or deactivated")

    request.state.principal = principal
    return principal


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve a live end-user from the bearer token."""
    return await _authenticate(request, token, db, PrincipalKind.USER)  # type: ignore[return-value]


async def get_current_admin(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    """Resolve a live admin from the bearer token."""
    return await _authenticate(request, token, db, PrincipalKind.ADMIN)  # type: ignore[return-value]


def require_role(*roles: AdminRole) -> Callable[..., Coroutine[Any, Any, Admin]]:
    """Allow only admins whose access level is one of *roles*."""
    allowed = {AdminRole(r).value for r in roles}

    async def _check(admin: Admin = Depends(get_current_admin)) -> Admin:
        if admin.access_level not in allowed:
            raise ForbiddenError(f"Access denied. Required roles: {', '.join(sorted(allowed))}")
        return admin

    return _check


def require_permission(permission: str) -> Callable[..., Coroutine[Any, Any, Admin]]:
    """Allow only admins holding the named permission flag."""
    if permission not in PERMISSIONS:
        raise ValueError(f"Unknown permission: {permission}")

    async def _check(admin: Admin = Depends(get_current_admin)) -> Admin:
        if not admin.has_permission(permission):
            raise ForbiddenError(f"Permission denied: {permission}")
        return admin

    return _check
