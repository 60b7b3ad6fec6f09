"""
User model — storefront customers.

Users are never hard-deleted; deactivation is terminal.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    first_name: str = Column(String(60), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(60), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(120), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    phone: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    avatar_url: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_verified: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
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

    orders = relationship("Order", back_populates="user")
