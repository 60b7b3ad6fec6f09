"""
Authentication flow tests: register, login, refresh rotation, logout,
password change.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditEntry
from app.models.token import RefreshToken

PASSWORD = "Str0ngPass"
INVITATION_CODE = "let-me-in"


def _register_body(**overrides):
    body = {
        "first_name": "Bob",
        "last_name": "Buyer",
        "email": "bob@example.com",
        "password": PASSWORD,
    }
    body.update(overrides)
    return body


async def _login(client: AsyncClient, email: str, password: str = PASSWORD, kind: str = "user"):
    return await client.post(
        "/api/v1/auth/login", json={"email": email, "password": password, "kind": kind}
    )


# ── Registration ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_register_user_returns_session(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/register", json=_register_body())
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["accessToken"] and data["refreshToken"]
    assert data["user"]["email"] == "bob@example.com"
    assert "hashed_password" not in data["user"]


@pytest.mark.asyncio
async def test_register_normalises_email_and_rejects_duplicate(async_client: AsyncClient):
    first = await async_client.post(
        "/api/v1/auth/register", json=_register_body(email="  Bob@Example.COM ")
    )
    assert first.status_code == 201
    assert first.json()["data"]["user"]["email"] == "bob@example.com"

    second = await async_client.post("/api/v1/auth/register", json=_register_body())
    assert second.status_code == 409
    assert second.json()["success"] is False


@pytest.mark.asyncio
async def test_register_rejects_weak_password(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/register", json=_register_body(password="weakpass"))
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert any(e["field"] == "password" for e in body["errors"])


@pytest.mark.asyncio
async def test_admin_registration_requires_invitation_code(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/auth/register",
        json=_register_body(kind="admin", email="ops@example.com", invitation_code="wrong"),
    )
    assert resp.status_code == 403

    resp = await async_client.post(
        "/api/v1/auth/register",
        json=_register_body(kind="admin", email="ops@example.com", invitation_code=INVITATION_CODE),
    )
    assert resp.status_code == 201
    admin = resp.json()["data"]["admin"]
    assert admin["access_level"] == "moderator"
    assert admin["perm_products"] is True
    assert admin["perm_orders"] is True
    assert admin["perm_users"] is False
    assert admin["perm_reports"] is False


@pytest.mark.asyncio
async def test_single_super_admin(async_client: AsyncClient):
    first = await async_client.post(
        "/api/v1/auth/register",
        json=_register_body(
            kind="admin",
            email="root@example.com",
            invitation_code=INVITATION_CODE,
            access_level="super",
            perm_users=False,
        ),
    )
    assert first.status_code == 201
    admin = first.json()["data"]["admin"]
    # requested flags are ignored for the top tier
    assert all(admin[f"perm_{p}"] for p in ("products", "orders", "users", "reports"))

    second = await async_client.post(
        "/api/v1/auth/register",
        json=_register_body(
            kind="admin",
            email="root2@example.com",
            invitation_code=INVITATION_CODE,
            access_level="super",
        ),
    )
    assert second.status_code == 403


@pytest.mark.asyncio
async def test_user_and_admin_emails_are_separate(async_client: AsyncClient, make_admin):
    await make_admin(email="shared@example.com")
    resp = await async_client.post(
        "/api/v1/auth/register", json=_register_body(email="shared@example.com")
    )
    assert resp.status_code == 201


# ── Login ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_success_updates_last_login(async_client: AsyncClient, make_user, db_session: AsyncSession):
    user = await make_user()
    resp = await _login(async_client, "ALICE@example.com")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["id"] == user.id
    assert data["refreshToken"]

    await db_session.refresh(user)
    assert user.last_login is not None


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(async_client: AsyncClient, make_user):
    await make_user()
    wrong_password = await _login(async_client, "alice@example.com", "Wr0ngPassword")
    unknown_email = await _login(async_client, "nobody@example.com")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"]


@pytest.mark.asyncio
async def test_login_deactivated_account_forbidden(async_client: AsyncClient, make_user):
    await make_user(is_active=False)
    resp = await _login(async_client, "alice@example.com")
    assert resp.status_code == 403

    # wrong password on a deactivated account still looks like bad credentials
    resp = await _login(async_client, "alice@example.com", "Wr0ngPassword")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_login_is_audited(async_client: AsyncClient, make_admin, db_session: AsyncSession):
    admin = await make_admin()
    resp = await _login(async_client, admin.email, kind="admin")
    assert resp.status_code == 200
    assert resp.json()["data"]["admin"]["id"] == admin.id

    count = await db_session.scalar(
        select(func.count(AuditEntry.id)).where(
            AuditEntry.admin_id == admin.id, AuditEntry.action == "LOGIN_ATTEMPT"
        )
    )
    assert count == 1


@pytest.mark.asyncio
async def test_login_kind_selects_credential_table(async_client: AsyncClient, make_admin):
    await make_admin(email="ops@example.com")
    resp = await _login(async_client, "ops@example.com", kind="user")
    assert resp.status_code == 401


# ── Refresh rotation ────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_refresh_rotates_and_old_token_is_rejected(async_client: AsyncClient, make_user):
    await make_user()
    login = await _login(async_client, "alice@example.com")
    old_refresh = login.json()["data"]["refreshToken"]

    rotated = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": old_refresh})
    assert rotated.status_code == 200
    new_pair = rotated.json()["data"]
    assert new_pair["refreshToken"] != old_refresh
    assert new_pair["accessToken"]

    replay = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": old_refresh})
    assert replay.status_code == 401

    again = await async_client.post(
        "/api/v1/auth/refresh", json={"refreshToken": new_pair["refreshToken"]}
    )
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_refresh_rejects_access_token_and_kind_mismatch(async_client: AsyncClient, make_user):
    await make_user()
    data = (await _login(async_client, "alice@example.com")).json()["data"]

    resp = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": data["accessToken"]})
    assert resp.status_code == 401
    assert resp.json()["code"] == "TOKEN_INVALID"

    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"refreshToken": data["refreshToken"], "kind": "admin"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rejected_for_deactivated_owner(
    async_client: AsyncClient, make_user, db_session: AsyncSession
):
    user = await make_user()
    refresh_token = (await _login(async_client, "alice@example.com")).json()["data"]["refreshToken"]

    await db_session.refresh(user)
    user.is_active = False
    await db_session.commit()

    resp = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": refresh_token})
    assert resp.status_code == 401


# ── Logout ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_logout_revokes_and_is_idempotent(async_client: AsyncClient, make_user):
    await make_user()
    refresh_token = (await _login(async_client, "alice@example.com")).json()["data"]["refreshToken"]

    for _ in range(2):
        resp = await async_client.post("/api/v1/auth/logout", json={"refreshToken": refresh_token})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    resp = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": refresh_token})
    assert resp.status_code == 401

    # nothing to revoke is still a success
    resp = await async_client.post("/api/v1/auth/logout", json={})
    assert resp.status_code == 200


# ── Password change ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_change_password_revokes_every_refresh_token(
    async_client: AsyncClient, make_user, db_session: AsyncSession
):
    user = await make_user()
    first = (await _login(async_client, "alice@example.com")).json()["data"]
    second = (await _login(async_client, "alice@example.com")).json()["data"]
    headers = {"Authorization": f"Bearer {first['accessToken']}"}

    resp = await async_client.post(
        "/api/v1/users/me/change-password",
        json={"current_password": PASSWORD, "new_password": "N3wPassword"},
        headers=headers,
    )
    assert resp.status_code == 200

    remaining = await db_session.scalar(
        select(func.count(RefreshToken.id)).where(RefreshToken.principal_id == user.id)
    )
    assert remaining == 0
    for pair in (first, second):
        resp = await async_client.post("/api/v1/auth/refresh", json={"refreshToken": pair["refreshToken"]})
        assert resp.status_code == 401

    assert (await _login(async_client, "alice@example.com")).status_code == 401
    assert (await _login(async_client, "alice@example.com", "N3wPassword")).status_code == 200


@pytest.mark.asyncio
async def test_change_password_requires_current_password(async_client: AsyncClient, make_user, auth_headers):
    user = await make_user()
    resp = await async_client.post(
        "/api/v1/users/me/change-password",
        json={"current_password": "Wr0ngPassword", "new_password": "N3wPassword"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 401
