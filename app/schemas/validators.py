"""Field normalisers reused across request schemas."""

from __future__ import annotations

import re

_TOTP_RE = re.compile(r"^\d{6}$")


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or len(v) > 120:
        raise ValueError("Valid email is required")
    return v


def check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain a number")
    return v


def required_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name must not be empty")
    if len(v) > 60:
        raise ValueError("Name must not exceed 60 characters")
    return v


def totp_code(v: str) -> str:
    v = v.strip()
    if not _TOTP_RE.match(v):
        raise ValueError("6-digit code required")
    return v
