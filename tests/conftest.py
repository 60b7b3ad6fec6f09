"""
Shared test fixtures for the ElectroShop API test suite.

Async throughout (aiosqlite + AsyncSession).
"""

import os
import sys
from decimal import Decimal
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
# CORS (JSON format)
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-access-signing-key-0123456789abcdef"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-signing-key-fedcba9876543210"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_INVITATION_CODE"] = "let-me-in"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.main import app
from app.models.admin import Admin
from app.models.catalog import Category, Product
from app.models.user import User

PASSWORD = "Str0ngPass"

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Factories ───────────────────────────────────────────────────────
@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(email: str = "alice@example.com", *, is_active: bool = True) -> User:
        user = User(
            first_name="Alice",
            last_name="Shopper",
            email=email,
            hashed_password=get_password_hash(PASSWORD),
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_admin(db_session: AsyncSession):
    async def _make(
        email: str = "ops@example.com",
        *,
        access_level: str = "admin",
        is_active: bool = True,
        **perms: bool,
    ) -> Admin:
        admin = Admin(
            first_name="Olga",
            last_name="Operator",
            email=email,
            hashed_password=get_password_hash(PASSWORD),
            access_level=access_level,
            is_active=is_active,
            perm_products=perms.get("products", True),
            perm_orders=perms.get("orders", True),
            perm_users=perms.get("users", False),
            perm_reports=perms.get("reports", False),
        )
        db_session.add(admin)
        await db_session.commit()
        return admin

    return _make


@pytest.fixture
async def category(db_session: AsyncSession) -> Category:
    cat = Category(name="Laptops", slug="laptops", icon="💻")
    db_session.add(cat)
    await db_session.commit()
    return cat


@pytest.fixture
def make_product(db_session: AsyncSession, category: Category):
    async def _make(
        name: str = "ThinkPad X1",
        *,
        price: str = "100.00",
        stock: int = 10,
        is_active: bool = True,
    ) -> Product:
        product = Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            category_id=category.id,
            price=Decimal(price),
            stock=stock,
            is_active=is_active,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a principal, minted directly (no login round-trip)."""

    def _headers(principal) -> dict[str, str]:
        kind = "admin" if isinstance(principal, Admin) else "user"
        return {"Authorization": f"Bearer {create_access_token(principal.id, kind)}"}

    return _headers
