"""
Authentication workflows for users and admins.

A login attempt moves from credentials to either a full session or, for
admins with 2FA enabled, a short-lived challenge that must be completed
with a TOTP code. Refresh tokens are persisted and rotate on every use;
a token that has been rotated, revoked or logged out is never accepted
again.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (BadRequestError, ConflictError,
                                 ForbiddenError, TokenInvalidError,
                                 UnauthorizedError)
from app.core.security import (create_access_token, create_refresh_token,
                               create_two_factor_token, decode_refresh_token,
                               decode_two_factor_token, generate_totp_secret,
                               get_password_hash, match_totp_step,
                               pwd_context, refresh_token_lifetime,
                               totp_provisioning_uri, verify_password)
from app.db.session import transaction
from app.models.admin import PERMISSIONS, Admin, AdminRole
from app.models.token import RefreshToken
from app.models.user import User
from app.schemas.auth import (AdminSession, RegisterRequest, TokenPair,
                              TwoFactorChallenge, UserSession)
from app.schemas.user import AdminRead, TwoFactorSetupRead, UserRead
from app.services.audit_service import (ACTION_CHANGE_PASSWORD,
                                        ACTION_ENABLE_2FA,
                                        ACTION_LOGIN_ATTEMPT,
                                        record_admin_action)
from app.services.principals import (Principal, PrincipalKind,
                                     get_principal_by_email)

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password"
_REFRESH_REJECTED = "Refresh token revoked or expired"

# Role-implied permissions; explicit flags on registration override them.
_DEFAULT_PERMISSIONS = {"products": True, "orders": True, "users": False, "reports": False}


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Session tokens ──────────────────────────────────────────────────
def _issue_session(db: AsyncSession, principal_id: int, kind: PrincipalKind) -> TokenPair:
    """Sign an access/refresh pair and stage the refresh row on *db*."""
    access = create_access_token(principal_id, kind.value)
    refresh = create_refresh_token(principal_id, kind.value)
    db.add(
        RefreshToken(
            token=refresh,
            principal_id=principal_id,
            principal_kind=kind.value,
            expires_at=_now() + refresh_token_lifetime(),
        )
    )
    return TokenPair(accessToken=access, refreshToken=refresh)


async def revoke_all_refresh_tokens(db: AsyncSession, principal_id: int, kind: PrincipalKind) -> int:
    result = await db.execute(
        delete(RefreshToken).where(
            RefreshToken.principal_id == principal_id,
            RefreshToken.principal_kind == kind.value,
        )
    )
    return result.rowcount or 0


def _session_view(principal: Principal, kind: PrincipalKind, tokens: TokenPair) -> UserSession | AdminSession:
    if kind is PrincipalKind.ADMIN:
        return AdminSession(admin=AdminRead.model_validate(principal), **tokens.model_dump())
    return UserSession(user=UserRead.model_validate(principal), **tokens.model_dump())


# ── Registration ────────────────────────────────────────────────────
async def register(db: AsyncSession, body: RegisterRequest) -> UserSession | AdminSession:
    if body.kind is PrincipalKind.ADMIN:
        return await _register_admin(db, body)
    return await _register_user(db, body)


async def _register_user(db: AsyncSession, body: RegisterRequest) -> UserSession:
    async with transaction(db):
        if await get_principal_by_email(db, PrincipalKind.USER, body.email) is not None:
            raise ConflictError("Email already registered")

        user = User(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            phone=body.phone,
            hashed_password=get_password_hash(body.password),
        )
        db.add(user)
        await db.flush()
        tokens = _issue_session(db, user.id, PrincipalKind.USER)

    logger.info("User registered: id=%s", user.id)
    return _session_view(user, PrincipalKind.USER, tokens)  # type: ignore[return-value]


def _resolve_permissions(body: RegisterRequest, level: AdminRole) -> dict[str, bool]:
    if level is AdminRole.SUPER:
        return {name: True for name in PERMISSIONS}
    perms = dict(_DEFAULT_PERMISSIONS)
    for name in PERMISSIONS:
        requested = getattr(body, f"perm_{name}")
        if requested is not None:
            perms[name] = requested
    return perms


async def _super_admin_exists(db: AsyncSession) -> bool:
    result = await db.execute(
        select(Admin.id).where(Admin.access_level == AdminRole.SUPER.value).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _register_admin(db: AsyncSession, body: RegisterRequest) -> AdminSession:
    expected = settings.ADMIN_INVITATION_CODE
    if not expected or not hmac.compare_digest((body.invitation_code or "").encode(), expected.encode()):
        raise ForbiddenError("Invalid invitation code")

    level = body.access_level or AdminRole.MODERATOR
    perms = _resolve_permissions(body, level)

    async with transaction(db):
        if await get_principal_by_email(db, PrincipalKind.ADMIN, body.email) is not None:
            raise ConflictError("Admin email already registered")
        if level is AdminRole.SUPER and await _super_admin_exists(db):
            raise ForbiddenError("Super admin already exists. Cannot create another.")

        admin = Admin(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            hashed_password=get_password_hash(body.password),
            department=body.department,
            access_level=level.value,
            **{f"perm_{name}": value for name, value in perms.items()},
        )
        db.add(admin)
        try:
            await db.flush()
        except IntegrityError as exc:
            # a concurrent registration won the race for the email or the super slot
            if level is AdminRole.SUPER:
                raise ForbiddenError("Super admin already exists. Cannot create another.") from exc
            raise ConflictError("Admin email already registered") from exc
        tokens = _issue_session(db, admin.id, PrincipalKind.ADMIN)

    logger.info("Admin registered: id=%s level=%s", admin.id, level.value)
    return _session_view(admin, PrincipalKind.ADMIN, tokens)  # type: ignore[return-value]


async def seed_super_admin(db: AsyncSession, email: str, password: str) -> bool:
    """Create the super admin on first start; no-op once one exists."""
    async with transaction(db):
        if await _super_admin_exists(db):
            return False
        if await get_principal_by_email(db, PrincipalKind.ADMIN, email) is not None:
            logger.warning("Super admin not seeded: %s already belongs to another admin", email)
            return False
        db.add(
            Admin(
                first_name="System",
                last_name="Administrator",
                email=email.strip().lower(),
                hashed_password=get_password_hash(password),
                access_level=AdminRole.SUPER.value,
                **{f"perm_{name}": True for name in PERMISSIONS},
            )
        )
    logger.info("Super admin created: %s (password: <redacted>)", email)
    return True


# ── Login ───────────────────────────────────────────────────────────
async def login(
    db: AsyncSession,
    kind: PrincipalKind,
    email: str,
    password: str,
    ip_address: str | None = None,
) -> UserSession | AdminSession | TwoFactorChallenge:
    async with transaction(db):
        principal = await get_principal_by_email(db, kind, email)
        if principal is None:
            pwd_context.dummy_verify()
            raise UnauthorizedError(_INVALID_CREDENTIALS)
        if not verify_password(password, principal.hashed_password):
            raise UnauthorizedError(_INVALID_CREDENTIALS)
        if not principal.is_active:
            raise ForbiddenError("Account is deactivated")

        if isinstance(principal, Admin):
            record_admin_action(
                db,
                admin_id=principal.id,
                action=ACTION_LOGIN_ATTEMPT,
                entity="admin",
                entity_id=principal.id,
                details={"email": principal.email, "access_level": principal.access_level},
                ip_address=ip_address,
            )
            if principal.two_fa_enabled:
                return TwoFactorChallenge(
                    tempToken=create_two_factor_token(principal.id, PrincipalKind.ADMIN.value)
                )

        principal.last_login = _now()
        tokens = _issue_session(db, principal.id, kind)

    return _session_view(principal, kind, tokens)


async def verify_second_factor(db: AsyncSession, temp_token: str, code: str) -> AdminSession:
    payload = decode_two_factor_token(temp_token)
    if payload["kind"] != PrincipalKind.ADMIN.value:
        raise TokenInvalidError("Invalid token type")

    async with transaction(db):
        result = await db.execute(
            select(Admin).where(Admin.id == int(payload["sub"])).with_for_update()
        )
        admin = result.scalar_one_or_none()
        if admin is None or not admin.is_active or not admin.two_fa_enabled or not admin.two_fa_secret:
            raise UnauthorizedError("Admin not found")

        step = match_totp_step(admin.two_fa_secret, code)
        if step is None:
            raise UnauthorizedError("Invalid 2FA code")
        if admin.two_fa_last_step is not None and step <= admin.two_fa_last_step:
            raise UnauthorizedError("2FA code already used")

        admin.two_fa_last_step = step
        admin.last_login = _now()
        tokens = _issue_session(db, admin.id, PrincipalKind.ADMIN)

    return _session_view(admin, PrincipalKind.ADMIN, tokens)  # type: ignore[return-value]


# ── Refresh / logout ────────────────────────────────────────────────
async def refresh(
    db: AsyncSession,
    refresh_token: str,
    kind: PrincipalKind | None = None,
) -> TokenPair:
    payload = decode_refresh_token(refresh_token)
    claimed = PrincipalKind(payload["kind"])
    if kind is not None and kind is not claimed:
        raise UnauthorizedError(_REFRESH_REJECTED)

    async with transaction(db):
        result = await db.execute(
            select(RefreshToken)
            .where(
                RefreshToken.token == refresh_token,
                RefreshToken.principal_kind == claimed.value,
                RefreshToken.expires_at > _now(),
            )
            .with_for_update()
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.warning("Rejected refresh for %s %s: revoked or reused", claimed.value, payload["sub"])
            raise UnauthorizedError(_REFRESH_REJECTED)

        model = Admin if claimed is PrincipalKind.ADMIN else User
        owner = await db.get(model, record.principal_id)
        if owner is None or not owner.is_active:
            raise UnauthorizedError("Account not found or deactivated")

        # single use: only the request that deletes the row may rotate it
        deleted = await db.execute(delete(RefreshToken).where(RefreshToken.id == record.id))
        if deleted.rowcount != 1:
            raise UnauthorizedError(_REFRESH_REJECTED)
        tokens = _issue_session(db, record.principal_id, claimed)

    return tokens


async def logout(db: AsyncSession, refresh_token: str | None) -> None:
    """Delete the stored refresh token if present; idempotent."""
    if not refresh_token:
        return
    async with transaction(db):
        await db.execute(delete(RefreshToken).where(RefreshToken.token == refresh_token))


# ── Credentials & liveness ──────────────────────────────────────────
async def change_password(
    db: AsyncSession,
    principal: Principal,
    kind: PrincipalKind,
    current_password: str,
    new_password: str,
    ip_address: str | None = None,
) -> int:
    """Re-hash the password and revoke every refresh token of *principal*."""
    if not verify_password(current_password, principal.hashed_password):
        raise UnauthorizedError("Current password is incorrect")

    async with transaction(db):
        principal.hashed_password = get_password_hash(new_password)
        revoked = await revoke_all_refresh_tokens(db, principal.id, kind)
        if kind is PrincipalKind.ADMIN:
            record_admin_action(
                db,
                admin_id=principal.id,
                action=ACTION_CHANGE_PASSWORD,
                entity="admin",
                entity_id=principal.id,
                ip_address=ip_address,
            )

    logger.info("Password changed for %s %s; %d refresh token(s) revoked", kind.value, principal.id, revoked)
    return revoked


async def deactivate_self(db: AsyncSession, user: User) -> None:
    async with transaction(db):
        user.is_active = False
        await revoke_all_refresh_tokens(db, user.id, PrincipalKind.USER)
    logger.info("User %s deactivated own account", user.id)


# ── Second factor enrollment ────────────────────────────────────────
async def setup_two_factor(db: AsyncSession, admin: Admin) -> TwoFactorSetupRead:
    if admin.two_fa_enabled:
        raise BadRequestError("2FA is already enabled")

    async with transaction(db):
        secret = generate_totp_secret()
        admin.two_fa_secret = secret
        admin.two_fa_last_step = None

    return TwoFactorSetupRead(secret=secret, provisioning_uri=totp_provisioning_uri(secret, admin.email))


async def enable_two_factor(
    db: AsyncSession,
    admin: Admin,
    code: str,
    ip_address: str | None = None,
) -> None:
    if admin.two_fa_enabled:
        raise BadRequestError("2FA is already enabled")
    if not admin.two_fa_secret:
        raise BadRequestError("Run 2FA setup first")

    step = match_totp_step(admin.two_fa_secret, code)
    if step is None:
        raise BadRequestError("Invalid 2FA code")

    async with transaction(db):
        admin.two_fa_enabled = True
        admin.two_fa_last_step = step
        record_admin_action(
            db,
            admin_id=admin.id,
            action=ACTION_ENABLE_2FA,
            entity="admin",
            entity_id=admin.id,
            ip_address=ip_address,
        )
    logger.info("2FA enabled for admin %s", admin.id)
