"""
Liveness probe and the error envelope.
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import register_exception_handlers


class _PgDriverError(Exception):
    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["service"] == "ElectroShop API"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "orig, expected",
    [
        (Exception("UNIQUE constraint failed: orders.order_number"), 409),
        (Exception("NOT NULL constraint failed: products.price"), 400),
        (Exception("CHECK constraint failed: ck_products_stock_nonnegative"), 400),
        (Exception("FOREIGN KEY constraint failed"), 400),
        (_PgDriverError("duplicate key value violates constraint", "23505"), 409),
        (_PgDriverError("violates foreign key constraint on unique_idx", "23503"), 400),
    ],
)
async def test_integrity_errors_map_by_constraint_kind(orig, expected):
    failing = FastAPI()
    register_exception_handlers(failing)

    @failing.get("/write")
    async def _write():
        raise IntegrityError("INSERT ...", {}, orig)

    async with AsyncClient(transport=ASGITransport(app=failing), base_url="http://test") as client:
        resp = await client.get("/write")
    assert resp.status_code == expected
    assert resp.json()["success"] is False
