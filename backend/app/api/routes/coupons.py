"""Coupon routes: public validation and back-office management."""

import logging

from fastapi import APIRouter, Request, status

from app.core.rate_limit import limiter
from app.core.rbac import RequireAdmin
from app.core.responses import list_response
from app.db.session import DbSession
from app.models.coupon import Coupon
from app.schemas.coupon import CouponCreate, CouponUpdate, CouponValidateRequest
from app.services import coupon_service

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


def _serialize_coupon(c: Coupon) -> dict:
    """Convert a Coupon ORM instance to a JSON-friendly dict."""
    return {
        "id": c.id,
        "code": c.code,
        "discount_type": c.discount_type.value,
        "discount_value": float(c.discount_value),
        "min_order_amount": float(c.min_order_amount or 0),
        "max_discount": float(c.max_discount) if c.max_discount is not None else None,
        "valid_from": c.valid_from.isoformat() if c.valid_from else None,
        "valid_until": c.valid_until.isoformat() if c.valid_until else None,
        "usage_limit": c.usage_limit,
        "usage_count": c.usage_count or 0,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


@router.post("/validate")
@limiter.limit("30/minute")
def validate_coupon(request: Request, body: CouponValidateRequest, db: DbSession):
    """Check a coupon against a cart total. Never consumes a use."""
    coupon = coupon_service.get_coupon_by_code(db, body.code)
    result = coupon_service.validate_coupon(body.code, body.cart_total, coupon)
    response = {
        "valid": result.valid,
        "discount_amount": float(result.discount_amount),
        "message": result.message,
    }
    if result.valid:
        response["coupon"] = {
            "code": coupon.code,
            "discount_type": coupon.discount_type.value,
            "discount_value": float(coupon.discount_value),
        }
    else:
        response["reason"] = result.reason
    return response


@admin_router.get("")
def list_coupons(db: DbSession, current_user: RequireAdmin):
    return list_response([_serialize_coupon(c) for c in coupon_service.list_coupons(db)])


@admin_router.post("", status_code=status.HTTP_201_CREATED)
def create_coupon(body: CouponCreate, db: DbSession, current_user: RequireAdmin):
    coupon = coupon_service.create_coupon(db, body.model_dump())
    return _serialize_coupon(coupon)


@admin_router.patch("/{coupon_id}")
def update_coupon(coupon_id: int, body: CouponUpdate, db: DbSession, current_user: RequireAdmin):
    coupon = coupon_service.update_coupon(db, coupon_id, body.model_dump(exclude_unset=True))
    return _serialize_coupon(coupon)


@admin_router.delete("/{coupon_id}")
def delete_coupon(coupon_id: int, db: DbSession, current_user: RequireAdmin):
    coupon_service.delete_coupon(db, coupon_id)
    return {"success": True}
