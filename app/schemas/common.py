"""Response envelope and pagination shared by every endpoint."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

# ids are 32-bit INTEGER columns
MAX_ID = 2**31 - 1


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


def paginate(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=page, limit=limit, pages=-(-total // limit) if limit else 0)
