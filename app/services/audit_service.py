"""
Audit sink for privileged actions.

Entries are appended to the caller's session, so they commit (or roll
back) together with the action they describe, and are mirrored to the
``audit`` logger. The application never reads them back.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditEntry

audit_logger = logging.getLogger("audit")

ACTION_LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
ACTION_ENABLE_2FA = "ENABLE_2FA"
ACTION_CHANGE_PASSWORD = "CHANGE_PASSWORD"
ACTION_UPDATE_ORDER_STATUS = "UPDATE_ORDER_STATUS"
ACTION_ACTIVATE_USER = "ACTIVATE_USER"
ACTION_DEACTIVATE_USER = "DEACTIVATE_USER"
ACTION_DELETE_USER = "DELETE_USER"
ACTION_CREATE_PRODUCT = "CREATE_PRODUCT"
ACTION_UPDATE_PRODUCT = "UPDATE_PRODUCT"
ACTION_DELETE_PRODUCT = "DELETE_PRODUCT"

_SENSITIVE_KEYS = {"password", "secret", "token", "key", "credential", "code"}


def record_admin_action(
    db: AsyncSession,
    *,
    admin_id: int | None,
    action: str,
    entity: str | None = None,
    entity_id: int | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> AuditEntry:
    """Append an audit entry to *db*; the caller owns the commit."""
    safe_details = None
    if details:
        safe_details = {
            k: v for k, v in details.items()
            if not any(s in k.lower() for s in _SENSITIVE_KEYS)
        }

    entry = AuditEntry(
        admin_id=admin_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        details=safe_details,
        ip_address=ip_address,
    )
    db.add(entry)
    audit_logger.info(
        "AUDIT: %s by admin %s on %s/%s from %s",
        action,
        admin_id,
        entity,
        entity_id,
        ip_address,
    )
    return entry
