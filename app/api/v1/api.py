"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import admin, auth, orders, products, users

api_router = APIRouter()

# Register, login, 2FA step-up, refresh, logout
api_router.include_router(auth.router)

# Customer self-service
api_router.include_router(users.router)

# Catalog (public reads, admin maintenance)
api_router.include_router(products.router)

# Order placement and history
api_router.include_router(orders.router)

# Back office: profile, 2FA enrollment, customers, orders, dashboard
api_router.include_router(admin.router)
