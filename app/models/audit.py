"""
AuditEntry model — append-only record of privileged actions.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String

from app.db.base import Base


class AuditEntry(Base):
    __tablename__ = "audit_log"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    admin_id: int | None = Column(Integer, nullable=True, index=True)  # type: ignore[assignment]
    action: str = Column(String(80), nullable=False, index=True)  # type: ignore[assignment]
    entity: str | None = Column(String(80), nullable=True)  # type: ignore[assignment]
    entity_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    details: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    ip_address: str | None = Column(String(45), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
