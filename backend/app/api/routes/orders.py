"""Storefront order routes."""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.core.rate_limit import limiter
from app.core.rbac import RequireAdmin
from app.core.responses import paginated_response
from app.db.session import DbSession
from app.models.order import OrderStatus
from app.schemas.order import OrderCreate, OrderResponse, OrderStatusUpdate
from app.services import order_lifecycle
from app.services.order_lifecycle import DeliveryDetails, RequestedLine

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


def _serialize_order(order) -> dict:
    return OrderResponse.model_validate(order).model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_order(request: Request, body: OrderCreate, db: DbSession):
    """Place an order. Totals are recomputed from current menu prices."""
    details = body.delivery_details
    order = order_lifecycle.create_order(
        db,
        [RequestedLine(i.item_id, i.quantity, i.customization_ids) for i in body.items],
        DeliveryDetails(
            full_name=details.full_name,
            phone=details.phone,
            email=details.email,
            address_line1=details.address_line1,
            address_line2=details.address_line2,
            landmark=details.landmark,
            pincode=details.pincode,
            city=details.city,
        ),
        coupon_code=body.coupon_code,
        notes=body.notes,
    )

    if body.total is not None and abs(Decimal(body.total) - order.total) > Decimal("0.01"):
        logger.warning(
            f"Order {order.order_number}: client total {body.total} differs from server total {order.total}"
        )

    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "subtotal": float(order.subtotal),
        "delivery_fee": float(order.delivery_fee),
        "tax": float(order.tax),
        "discount_amount": float(order.discount_amount),
        "coupon_code": order.coupon_code,
        "total": float(order.total),
        "estimated_delivery": order.estimated_delivery.isoformat() if order.estimated_delivery else None,
    }


@router.get("")
def list_orders_for_phone(db: DbSession, phone: Optional[str] = Query(default=None)):
    """Order history for a phone number, newest first."""
    if not phone:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number required")
    return [_serialize_order(o) for o in order_lifecycle.list_orders_by_phone(db, phone)]


@router.get("/{order_id}")
def get_order(order_id: int, db: DbSession):
    return _serialize_order(order_lifecycle.get_order(db, order_id))


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    db: DbSession,
    current_user: RequireAdmin,
):
    """Move an order forward through the delivery pipeline, or cancel it."""
    order = order_lifecycle.change_status(db, order_id, body.status)
    logger.info(f"Order {order.order_number} set to {order.status.value} by {current_user.email}")
    return {"success": True, "order": _serialize_order(order)}


@admin_router.get("")
def list_all_orders(
    db: DbSession,
    current_user: RequireAdmin,
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
):
    orders, total = order_lifecycle.list_orders(db, status_filter, limit=limit, offset=skip)
    return paginated_response([_serialize_order(o) for o in orders], total, skip, limit)
