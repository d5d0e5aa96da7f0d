"""Tests for cart pricing: subtotal, delivery fee, tax, discount and grand total."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.models.coupon import Coupon, DiscountType
from app.services.pricing import (
    CartLine,
    PricingConfig,
    SelectedCustomization,
    compute_delivery_fee,
    compute_tax,
    compute_totals,
    merge_cart_lines,
    to_money,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
CONFIG = PricingConfig()


def _coupon(code="TEST", discount_type=DiscountType.PERCENTAGE, value="20", **kwargs):
    defaults = dict(
        min_order_amount=Decimal("0"),
        max_discount=None,
        valid_from=None,
        valid_until=None,
        usage_limit=None,
        usage_count=0,
        is_active=True,
    )
    defaults.update(kwargs)
    return Coupon(code=code, discount_type=discount_type, discount_value=Decimal(value), **defaults)


def _line(price, quantity=1, item_id=1, customizations=()):
    return CartLine(
        item_id=item_id,
        unit_price=Decimal(price),
        quantity=quantity,
        customizations=tuple(customizations),
    )


class TestWorkedExamples:
    """The two reference carts."""

    def test_percentage_coupon_below_free_delivery(self):
        coupon = _coupon(value="20")
        totals = compute_totals([_line("75", 2)], coupon, now=NOW, config=CONFIG)

        assert totals.subtotal == Decimal("150.00")
        assert totals.discount == Decimal("30.00")
        assert totals.delivery_fee == Decimal("30.00")
        assert totals.tax == Decimal("7.50")
        assert totals.grand_total == Decimal("157.50")

    def test_fixed_coupon_with_minimum_order(self):
        coupon = _coupon(
            code="FLAT100",
            discount_type=DiscountType.FIXED,
            value="100",
            min_order_amount=Decimal("200"),
        )
        totals = compute_totals([_line("125", 2)], coupon, now=NOW, config=CONFIG)

        assert totals.coupon.valid is True
        assert totals.subtotal == Decimal("250.00")
        assert totals.discount == Decimal("100.00")
        assert totals.delivery_fee == Decimal("0.00")
        assert totals.tax == Decimal("12.50")
        assert totals.grand_total == Decimal("162.50")


class TestDeliveryFee:
    @pytest.mark.parametrize("subtotal,expected", [
        ("0", "30.00"),
        ("199.99", "30.00"),
        ("200", "0.00"),
        ("200.01", "0.00"),
        ("1000", "0.00"),
    ])
    def test_threshold(self, subtotal, expected):
        assert compute_delivery_fee(Decimal(subtotal), CONFIG) == Decimal(expected)

    def test_threshold_is_configurable(self):
        config = PricingConfig(free_delivery_threshold=Decimal("500"), flat_delivery_fee=Decimal("45"))
        assert compute_delivery_fee(Decimal("300"), config) == Decimal("45.00")
        assert compute_delivery_fee(Decimal("500"), config) == Decimal("0.00")


class TestTax:
    @pytest.mark.parametrize("subtotal,expected", [
        ("150", "7.50"),
        ("250", "12.50"),
        ("0", "0.00"),
        # 0.05 * 10.10 = 0.505 rounds half-up
        ("10.10", "0.51"),
        ("0.10", "0.01"),
    ])
    def test_rounds_half_up(self, subtotal, expected):
        assert compute_tax(Decimal(subtotal), CONFIG) == Decimal(expected)

    def test_tax_uses_pre_discount_subtotal(self):
        coupon = _coupon(value="50")
        totals = compute_totals([_line("100", 3)], coupon, now=NOW, config=CONFIG)
        assert totals.tax == Decimal("15.00")
        assert totals.delivery_fee == Decimal("0.00")


class TestDiscountClamping:
    def test_fixed_discount_never_exceeds_subtotal(self):
        coupon = _coupon(discount_type=DiscountType.FIXED, value="500")
        totals = compute_totals([_line("60")], coupon, now=NOW, config=CONFIG)

        assert totals.discount == Decimal("60.00")
        # 60 + 30 fee + 3 tax - 60
        assert totals.grand_total == Decimal("33.00")

    def test_percentage_respects_cap(self):
        coupon = _coupon(value="50", max_discount=Decimal("40"))
        totals = compute_totals([_line("300")], coupon, now=NOW, config=CONFIG)
        assert totals.discount == Decimal("40.00")

    def test_invalid_coupon_gives_no_discount(self):
        coupon = _coupon(is_active=False)
        totals = compute_totals([_line("150")], coupon, now=NOW, config=CONFIG)

        assert totals.discount == Decimal("0.00")
        assert totals.coupon.valid is False
        assert totals.grand_total == Decimal("187.50")

    def test_unknown_code_reports_invalid(self):
        totals = compute_totals([_line("150")], None, coupon_code="NOPE", now=NOW, config=CONFIG)
        assert totals.coupon.reason == "invalid code"
        assert totals.discount == Decimal("0.00")

    @pytest.mark.parametrize("price,qty,value,kind", [
        ("1", 1, "100", DiscountType.PERCENTAGE),
        ("0.01", 3, "99", DiscountType.FIXED),
        ("199.99", 1, "15", DiscountType.PERCENTAGE),
        ("45.55", 7, "33.33", DiscountType.PERCENTAGE),
        ("500", 2, "250", DiscountType.FIXED),
    ])
    def test_totals_invariants(self, price, qty, value, kind):
        coupon = _coupon(discount_type=kind, value=value)
        totals = compute_totals([_line(price, qty)], coupon, now=NOW, config=CONFIG)

        assert Decimal("0") <= totals.discount <= totals.subtotal
        assert totals.tax >= 0
        assert totals.grand_total == max(
            Decimal("0"),
            totals.subtotal + totals.delivery_fee + totals.tax - totals.discount,
        )


class TestPurity:
    def test_same_input_same_output(self):
        lines = [_line("89", 2), _line("35", 1, item_id=2)]
        coupon = _coupon(value="10")

        first = compute_totals(lines, coupon, now=NOW, config=CONFIG)
        second = compute_totals(lines, coupon, now=NOW, config=CONFIG)

        assert first == second
        assert coupon.usage_count == 0

    def test_empty_cart(self):
        totals = compute_totals([], now=NOW, config=CONFIG)
        assert totals.subtotal == Decimal("0.00")
        assert totals.delivery_fee == Decimal("30.00")
        assert totals.grand_total == Decimal("30.00")


class TestCartLines:
    def test_subtotal_includes_quantity(self):
        totals = compute_totals([_line("89", 3), _line("35.50", 2, item_id=2)], config=CONFIG)
        assert totals.subtotal == Decimal("338.00")

    def test_merge_same_item_same_customizations(self):
        cheese = SelectedCustomization(id="7", name="Extra Cheese", price_delta=Decimal("20"))
        onion = SelectedCustomization(id="3", name="No Onion", kind="removal")
        lines = [
            _line("109", 1, customizations=[cheese, onion]),
            _line("109", 2, customizations=[onion, cheese]),
        ]
        merged = merge_cart_lines(lines)
        assert len(merged) == 1
        assert merged[0].quantity == 3

    def test_different_customizations_stay_separate(self):
        cheese = SelectedCustomization(id="7", name="Extra Cheese", price_delta=Decimal("20"))
        merged = merge_cart_lines([_line("89"), _line("109", customizations=[cheese])])
        assert len(merged) == 2

    def test_to_money_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")
