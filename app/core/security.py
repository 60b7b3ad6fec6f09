"""
Token service (JWT), password hashing (bcrypt) and TOTP helpers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pyotp
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pyotp.utils import strings_equal

from app.core.config import settings
from app.core.exceptions import TokenExpiredError, TokenInvalidError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_ALGORITHM = settings.ALGORITHM

ACCESS = "access"
REFRESH = "refresh"
TWO_FA_PENDING = "2fa_pending"


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def _encode(
    principal_id: int,
    kind: str,
    token_type: str,
    lifetime: timedelta,
    secret: str,
) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {
            "sub": str(principal_id),
            "kind": kind,
            "type": token_type,
            "iat": now,
            "exp": now + lifetime,
            "jti": uuid.uuid4().hex,
        },
        secret,
        algorithm=_ALGORITHM,
    )


def create_access_token(principal_id: int, kind: str) -> str:
    return _encode(
        principal_id,
        kind,
        ACCESS,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        settings.SECRET_KEY,
    )


def create_refresh_token(principal_id: int, kind: str) -> str:
    """Signed with the refresh key; the caller must persist it."""
    return _encode(
        principal_id,
        kind,
        REFRESH,
        refresh_token_lifetime(),
        settings.REFRESH_SECRET_KEY,
    )


def create_two_factor_token(principal_id: int, kind: str) -> str:
    return _encode(
        principal_id,
        kind,
        TWO_FA_PENDING,
        timedelta(minutes=settings.TWO_FA_TOKEN_EXPIRE_MINUTES),
        settings.SECRET_KEY,
    )


def refresh_token_lifetime() -> timedelta:
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def decode_token(token: str, secret: str, expected_type: str) -> dict[str, Any]:
    """Verify signature, expiry and type tag of *token*.

    Raises ``TokenExpiredError`` when the signature is valid but ``exp``
    has passed, ``TokenInvalidError`` for anything else.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except JWTError as exc:
        raise TokenInvalidError() from exc

    if payload.get("type") != expected_type:
        raise TokenInvalidError("Invalid token type")
    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit() or payload.get("kind") is None:
        raise TokenInvalidError()
    return payload


def decode_access_token(token: str) -> dict[str, Any]:
    return decode_token(token, settings.SECRET_KEY, ACCESS)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return decode_token(token, settings.REFRESH_SECRET_KEY, REFRESH)


def decode_two_factor_token(token: str) -> dict[str, Any]:
    return decode_token(token, settings.SECRET_KEY, TWO_FA_PENDING)


# ── TOTP ────────────────────────────────────────────────────────────
def generate_totp_secret() -> str:
    return pyotp.random_base32()


def totp_provisioning_uri(secret: str, email: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=settings.TOTP_ISSUER)


def match_totp_step(
    secret: str,
    code: str,
    *,
    window: int | None = None,
    for_time: datetime | None = None,
) -> int | None:
    """Return the time step *code* belongs to, or ``None`` if it matches none.

    Steps within ``±window`` of the current one are accepted to absorb
    clock drift between server and authenticator.
    """
    if window is None:
        window = settings.TOTP_VALID_WINDOW
    totp = pyotp.TOTP(secret)
    current = totp.timecode(for_time or datetime.now(timezone.utc))
    for step in range(current - window, current + window + 1):
        if strings_equal(str(code), totp.generate_otp(step)):
            return step
    return None
