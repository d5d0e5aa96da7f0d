"""Coupon validation and usage accounting.

Validation is read-only: a customer can validate the same code any number of
times without consuming a use. Usage is only counted by ``increment_usage``
once a payment is confirmed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.exceptions import NotFound, ValidationFailed
from app.models.coupon import Coupon, DiscountType

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

REASON_INVALID_CODE = "invalid code"
REASON_INACTIVE = "inactive"
REASON_NOT_YET_VALID = "not yet valid"
REASON_EXPIRED = "expired"
REASON_USAGE_LIMIT = "usage limit reached"
REASON_MIN_ORDER = "minimum order not met"

_MESSAGES = {
    REASON_INVALID_CODE: "Invalid coupon code",
    REASON_INACTIVE: "This coupon is no longer active",
    REASON_NOT_YET_VALID: "This coupon is not yet valid",
    REASON_EXPIRED: "This coupon has expired",
    REASON_USAGE_LIMIT: "This coupon has reached its usage limit",
}


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    discount_amount: Decimal
    message: str
    reason: Optional[str] = None


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; treat them as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _reject(reason: str, message: Optional[str] = None) -> CouponValidation:
    return CouponValidation(
        valid=False,
        discount_amount=Decimal("0.00"),
        message=message or _MESSAGES[reason],
        reason=reason,
    )


def calculate_discount(coupon: Any, cart_subtotal: Decimal) -> Decimal:
    """Raw discount for an eligible cart, clamped to ``[0, cart_subtotal]``."""
    cart_subtotal = _money(cart_subtotal)
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = cart_subtotal * value / Decimal("100")
        if coupon.max_discount is not None and discount > Decimal(str(coupon.max_discount)):
            discount = Decimal(str(coupon.max_discount))
    else:
        discount = value
    return max(Decimal("0.00"), min(_money(discount), cart_subtotal))


def validate_coupon(
    code: Optional[str],
    cart_subtotal: Any,
    coupon: Any,
    now: Optional[datetime] = None,
) -> CouponValidation:
    """Run the eligibility checks in order and stop at the first failure.

    ``coupon`` is the record looked up for ``code.upper()`` (None when no
    such coupon exists). Deterministic for a fixed ``now``.
    """
    now = _as_aware(now) or datetime.now(timezone.utc)
    cart_subtotal = _money(cart_subtotal)

    if not code or coupon is None or (coupon.code or "").upper() != code.strip().upper():
        return _reject(REASON_INVALID_CODE)
    if not coupon.is_active:
        return _reject(REASON_INACTIVE)

    valid_from = _as_aware(coupon.valid_from)
    if valid_from is not None and now < valid_from:
        return _reject(REASON_NOT_YET_VALID)

    valid_until = _as_aware(coupon.valid_until)
    if valid_until is not None and now > valid_until:
        return _reject(REASON_EXPIRED)

    if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
        return _reject(REASON_USAGE_LIMIT)

    min_order = _money(coupon.min_order_amount)
    if cart_subtotal < min_order:
        return _reject(
            REASON_MIN_ORDER,
            f"Minimum order of Rs {min_order} required for this coupon",
        )

    return CouponValidation(
        valid=True,
        discount_amount=calculate_discount(coupon, cart_subtotal),
        message="Coupon applied successfully!",
    )


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------

def get_coupon_by_code(db: Session, code: Optional[str]) -> Optional[Coupon]:
    if not code:
        return None
    stmt = select(Coupon).where(Coupon.code == code.strip().upper())
    return db.execute(stmt).scalar_one_or_none()


def increment_usage(db: Session, code: str) -> Optional[int]:
    """Atomically add one use to a coupon and return the new count.

    Issued as ``usage_count = usage_count + 1`` so concurrent confirmations
    are all counted. Runs inside the caller's transaction; returns None when
    the coupon no longer exists.
    """
    code = code.strip().upper()
    result = db.execute(
        update(Coupon)
        .where(Coupon.code == code)
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(f"Coupon {code} vanished before usage could be recorded")
        return None
    return db.execute(select(Coupon.usage_count).where(Coupon.code == code)).scalar_one()


def list_coupons(db: Session) -> List[Coupon]:
    return list(db.execute(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc())).scalars())


_EDITABLE_FIELDS = (
    "code", "discount_type", "discount_value", "min_order_amount", "max_discount",
    "valid_from", "valid_until", "usage_limit", "is_active",
)


def create_coupon(db: Session, data: dict) -> Coupon:
    code = (data.get("code") or "").strip().upper()
    if get_coupon_by_code(db, code) is not None:
        raise ValidationFailed(f"Coupon code {code} already exists")
    coupon = Coupon(**{k: v for k, v in data.items() if k in _EDITABLE_FIELDS})
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    logger.info(f"Created coupon {coupon.code}")
    return coupon


def update_coupon(db: Session, coupon_id: int, data: dict) -> Coupon:
    coupon = db.get(Coupon, coupon_id)
    if coupon is None:
        raise NotFound("Coupon not found")
    if data.get("code"):
        other = get_coupon_by_code(db, data["code"])
        if other is not None and other.id != coupon.id:
            raise ValidationFailed(f"Coupon code {other.code} already exists")
    changes = {k: v for k, v in data.items() if k in _EDITABLE_FIELDS}

    merged = {f: changes.get(f, getattr(coupon, f)) for f in _EDITABLE_FIELDS}
    valid_from = _as_aware(merged["valid_from"])
    valid_until = _as_aware(merged["valid_until"])
    if valid_from and valid_until and valid_until < valid_from:
        raise ValidationFailed("valid_until must be after valid_from")
    if merged["discount_type"] == DiscountType.PERCENTAGE and merged["discount_value"] > 100:
        raise ValidationFailed("percentage discount cannot exceed 100")

    for key, value in changes.items():
        setattr(coupon, key, value)
    db.commit()
    db.refresh(coupon)
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> None:
    coupon = db.get(Coupon, coupon_id)
    if coupon is None:
        raise NotFound("Coupon not found")
    db.delete(coupon)
    db.commit()
    logger.info(f"Deleted coupon {coupon.code}")
