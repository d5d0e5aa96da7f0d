"""Cart pricing: subtotal, delivery fee, tax, coupon discount and grand total.

Everything here is pure. Identical inputs (lines, coupon record, ``now`` and
pricing config) always produce identical totals, which is what lets the
checkout re-price a cart server-side and compare it with the client's quote.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional, Tuple

from app.core.config import Settings, settings
from app.services.coupon_service import CouponValidation, validate_coupon

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Round to currency minor units, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SelectedCustomization:
    id: str
    name: str
    price_delta: Decimal = ZERO
    kind: str = "extra"  # extra, removal, choice

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_delta": str(to_money(self.price_delta)),
            "kind": self.kind,
        }


@dataclass(frozen=True)
class CartLine:
    """One cart entry. ``unit_price`` already includes selected add-ons."""

    item_id: int
    unit_price: Decimal
    quantity: int
    customizations: Tuple[SelectedCustomization, ...] = ()
    name: str = ""

    @property
    def merge_key(self) -> Tuple[int, Tuple[str, ...]]:
        """Identity for merging: same item with the same customization set."""
        return self.item_id, tuple(sorted(c.id for c in self.customizations))

    @property
    def line_subtotal(self) -> Decimal:
        return to_money(to_money(self.unit_price) * self.quantity)


def merge_cart_lines(lines: Iterable[CartLine]) -> List[CartLine]:
    """Combine lines sharing a merge key by summing their quantities.

    First-seen order is preserved. Lines with the same item but different
    customization sets stay separate.
    """
    merged: dict = {}
    for line in lines:
        existing = merged.get(line.merge_key)
        if existing is None:
            merged[line.merge_key] = line
        else:
            merged[line.merge_key] = CartLine(
                item_id=existing.item_id,
                unit_price=existing.unit_price,
                quantity=existing.quantity + line.quantity,
                customizations=existing.customizations,
                name=existing.name,
            )
    return list(merged.values())


@dataclass(frozen=True)
class PricingConfig:
    free_delivery_threshold: Decimal = Decimal("200")
    flat_delivery_fee: Decimal = Decimal("30")
    tax_rate: Decimal = Decimal("0.05")

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "PricingConfig":
        return cls(
            free_delivery_threshold=Decimal(config.free_delivery_threshold),
            flat_delivery_fee=Decimal(config.flat_delivery_fee),
            tax_rate=Decimal(config.tax_rate),
        )


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    discount: Decimal
    grand_total: Decimal
    coupon: Optional[CouponValidation] = field(default=None, compare=False)

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "delivery_fee": float(self.delivery_fee),
            "tax": float(self.tax),
            "discount": float(self.discount),
            "grand_total": float(self.grand_total),
        }


def compute_subtotal(lines: Iterable[CartLine]) -> Decimal:
    return to_money(sum((line.line_subtotal for line in lines), ZERO))


def compute_delivery_fee(subtotal: Decimal, config: Optional[PricingConfig] = None) -> Decimal:
    config = config or PricingConfig.from_settings()
    if subtotal >= config.free_delivery_threshold:
        return ZERO
    return to_money(config.flat_delivery_fee)


def compute_tax(subtotal: Decimal, config: Optional[PricingConfig] = None) -> Decimal:
    config = config or PricingConfig.from_settings()
    return to_money(to_money(subtotal) * config.tax_rate)


def compute_totals(
    lines: Iterable[CartLine],
    coupon: Any = None,
    *,
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[PricingConfig] = None,
) -> Totals:
    """Price a cart.

    ``coupon`` is a coupon record (or None). When ``coupon_code`` is given
    without a matching record the coupon is reported invalid and no discount
    applies. Delivery fee and tax are based on the pre-discount subtotal.
    """
    config = config or PricingConfig.from_settings()
    lines = list(lines)

    subtotal = compute_subtotal(lines)
    delivery_fee = compute_delivery_fee(subtotal, config)
    tax = compute_tax(subtotal, config)

    validation = None
    discount = ZERO
    code = coupon_code or (coupon.code if coupon is not None else None)
    if code:
        validation = validate_coupon(code, subtotal, coupon, now=now)
        if validation.valid:
            discount = min(to_money(validation.discount_amount), subtotal)

    grand_total = max(ZERO, to_money(subtotal + delivery_fee + tax - discount))
    return Totals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        discount=discount,
        grand_total=grand_total,
        coupon=validation,
    )
