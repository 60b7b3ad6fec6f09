"""Pydantic schemas for registration, login, 2FA and token rotation."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.models.admin import AdminRole
from app.schemas.user import AdminRead, UserRead
from app.schemas.validators import (check_password_strength, normalise_email,
                                    required_name, totp_code)
from app.services.principals import PrincipalKind


class RegisterRequest(BaseModel):
    kind: PrincipalKind = PrincipalKind.USER
    first_name: str
    last_name: str
    email: str
    password: str
    phone: str | None = Field(default=None, max_length=20)

    # admin-only fields
    invitation_code: str | None = None
    department: str | None = Field(default=None, max_length=80)
    access_level: AdminRole | None = None
    perm_products: bool | None = None
    perm_orders: bool | None = None
    perm_users: bool | None = None
    perm_reports: bool | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("password")
    @classmethod
    def _strength(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _names(cls, v: str) -> str:
        return required_name(v)


class LoginRequest(BaseModel):
    kind: PrincipalKind = PrincipalKind.USER
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class VerifyTwoFactorRequest(BaseModel):
    temp_token: str = Field(validation_alias=AliasChoices("temp_token", "tempToken"))
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return totp_code(v)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(validation_alias=AliasChoices("refreshToken", "refresh_token"))
    kind: PrincipalKind | None = None


class LogoutRequest(BaseModel):
    refresh_token: str | None = Field(
        default=None, validation_alias=AliasChoices("refreshToken", "refresh_token")
    )


# ── Responses ───────────────────────────────────────────────────────
class TokenPair(BaseModel):
    accessToken: str
    refreshToken: str
    token_type: str = "bearer"


class UserSession(TokenPair):
    user: UserRead


class AdminSession(TokenPair):
    admin: AdminRead


class TwoFactorChallenge(BaseModel):
    requires2FA: bool = True
    tempToken: str
