"""API routes."""

from fastapi import APIRouter

from app.api.routes import admin, auth, cart, coupons, menu, orders, payments

api_router = APIRouter()

# Storefront
api_router.include_router(menu.router, tags=["menu"])
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(payments.router, tags=["payments"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Back-office
api_router.include_router(orders.admin_router, prefix="/admin/orders", tags=["admin"])
api_router.include_router(coupons.admin_router, prefix="/admin/coupons", tags=["admin"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
