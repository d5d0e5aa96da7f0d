"""Server-side cart quote."""

from fastapi import APIRouter

from app.db.session import DbSession
from app.schemas.order import CartQuoteRequest
from app.services.order_lifecycle import RequestedLine, normalize_coupon_code, quote_cart

router = APIRouter()


@router.post("/quote")
def quote(body: CartQuoteRequest, db: DbSession):
    """Price a cart with current menu prices and an optional coupon."""
    lines, totals = quote_cart(
        db,
        [RequestedLine(i.item_id, i.quantity, i.customization_ids) for i in body.items],
        body.coupon_code,
    )
    result = totals.as_dict()
    result["lines"] = [
        {
            "item_id": line.item_id,
            "name": line.name,
            "unit_price": float(line.unit_price),
            "quantity": line.quantity,
            "line_subtotal": float(line.line_subtotal),
            "customizations": [c.as_dict() for c in line.customizations],
        }
        for line in lines
    ]
    if totals.coupon is not None:
        result["coupon"] = {
            "code": normalize_coupon_code(body.coupon_code),
            "valid": totals.coupon.valid,
            "message": totals.coupon.message,
            "reason": totals.coupon.reason,
        }
    return result
