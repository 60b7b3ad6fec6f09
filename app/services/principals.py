"""
Principal kinds and lookups shared by the auth service and the guard.
"""

from __future__ import annotations

import enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin import Admin
from app.models.user import User


class PrincipalKind(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


Principal = User | Admin

_MODELS: dict[PrincipalKind, type[User] | type[Admin]] = {
    PrincipalKind.USER: User,
    PrincipalKind.ADMIN: Admin,
}


def model_for(kind: PrincipalKind) -> type[User] | type[Admin]:
    return _MODELS[PrincipalKind(kind)]


async def get_principal(db: AsyncSession, kind: PrincipalKind, principal_id: int) -> Principal | None:
    model = model_for(kind)
    result = await db.execute(select(model).where(model.id == principal_id))
    return result.scalar_one_or_none()


async def get_principal_by_email(db: AsyncSession, kind: PrincipalKind, email: str) -> Principal | None:
    model = model_for(kind)
    result = await db.execute(select(model).where(model.email == email.strip().lower()))
    return result.scalar_one_or_none()
