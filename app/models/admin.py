"""
Admin model — back-office principals with a role tier and permission flags.

The role implies default permissions at registration; the individual
``perm_*`` flags are what authorization actually checks.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, text

from app.db.base import Base


class AdminRole(str, enum.Enum):
    SUPER = "super"
    ADMIN = "admin"
    MODERATOR = "moderator"


PERMISSIONS = ("products", "orders", "users", "reports")


class Admin(Base):
    __tablename__ = "admins"
    __table_args__ = (
        # at most one super admin
        Index(
            "uq_admins_single_super",
            "access_level",
            unique=True,
            postgresql_where=text("access_level = 'super'"),
            sqlite_where=text("access_level = 'super'"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    first_name: str = Column(String(60), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(60), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(120), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    department: str | None = Column(String(80), nullable=True)  # type: ignore[assignment]
    access_level: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=AdminRole.MODERATOR.value,
        server_default=AdminRole.MODERATOR.value,
    )  # super | admin | moderator
    perm_products: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    perm_orders: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    perm_users: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    perm_reports: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    two_fa_secret: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    two_fa_enabled: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    # last accepted TOTP time step; a code is never accepted twice
    two_fa_last_step: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    last_login: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def has_permission(self, name: str) -> bool:
        return bool(getattr(self, f"perm_{name}", False))
