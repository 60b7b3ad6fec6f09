"""
Customer order endpoints — placement and the caller's own order history.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.common import MAX_ID, ApiResponse
from app.schemas.order import OrderCreate, OrderDetail, OrderList, OrderPlaced
from app.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=ApiResponse[OrderPlaced],
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    body: OrderCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Place an order from the submitted cart. All lines succeed or none do."""
    placed = await order_service.place_order(db, current_user.id, body)
    return ApiResponse(message="Order placed successfully", data=placed)


@router.get("", response_model=ApiResponse[OrderList])
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    return ApiResponse(data=await order_service.list_user_orders(db, current_user.id, page, limit))


@router.get("/{order_id}", response_model=ApiResponse[OrderDetail])
async def get_my_order(
    order_id: int = Path(le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    order = await order_service.get_user_order(db, current_user.id, order_id)
    return ApiResponse(data=OrderDetail.model_validate(order))
