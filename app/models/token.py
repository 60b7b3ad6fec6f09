"""
RefreshToken model — persisted, single-use refresh tokens.

A row exists only while its token may still be rotated; rotation,
logout and password changes delete rows.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from app.db.base import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (Index("ix_refresh_tokens_principal", "principal_kind", "principal_id"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    token: str = Column(String(512), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    principal_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    principal_kind: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # user | admin
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
