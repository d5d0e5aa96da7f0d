"""Tests for coupon validation, usage accounting and coupon admin."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.models.coupon import Coupon, DiscountType
from app.services.coupon_service import (
    get_coupon_by_code,
    increment_usage,
    validate_coupon,
)

NOW = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _coupon(**kwargs):
    data = dict(
        code="WELCOME",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        min_order_amount=Decimal("0"),
        max_discount=None,
        valid_from=None,
        valid_until=None,
        usage_limit=None,
        usage_count=0,
        is_active=True,
    )
    data.update(kwargs)
    return Coupon(**data)


class TestValidateCoupon:
    """Checks run in order and stop at the first failure."""

    def test_missing_coupon_is_invalid_code(self):
        result = validate_coupon("WELCOME", Decimal("100"), None, now=NOW)
        assert result.valid is False
        assert result.reason == "invalid code"
        assert result.discount_amount == Decimal("0")

    def test_code_is_case_insensitive(self):
        result = validate_coupon("welcome", Decimal("100"), _coupon(), now=NOW)
        assert result.valid is True
        assert result.discount_amount == Decimal("10.00")

    def test_inactive(self):
        result = validate_coupon("WELCOME", Decimal("100"), _coupon(is_active=False), now=NOW)
        assert result.reason == "inactive"

    def test_not_yet_valid(self):
        coupon = _coupon(valid_from=NOW + timedelta(days=1))
        assert validate_coupon("WELCOME", Decimal("100"), coupon, now=NOW).reason == "not yet valid"

    def test_expired(self):
        coupon = _coupon(valid_until=NOW - timedelta(seconds=1))
        assert validate_coupon("WELCOME", Decimal("100"), coupon, now=NOW).reason == "expired"

    def test_naive_datetimes_are_treated_as_utc(self):
        coupon = _coupon(valid_until=(NOW + timedelta(hours=1)).replace(tzinfo=None))
        assert validate_coupon("WELCOME", Decimal("100"), coupon, now=NOW).valid is True

    def test_usage_limit_reached(self):
        coupon = _coupon(usage_limit=5, usage_count=5)
        result = validate_coupon("WELCOME", Decimal("100"), coupon, now=NOW)

        assert result.valid is False
        assert result.reason == "usage limit reached"
        assert result.discount_amount == Decimal("0")

    def test_minimum_order_message_names_threshold(self):
        coupon = _coupon(min_order_amount=Decimal("299"))
        result = validate_coupon("WELCOME", Decimal("150"), coupon, now=NOW)

        assert result.reason == "minimum order not met"
        assert "299" in result.message

    def test_first_failing_check_wins(self):
        coupon = _coupon(is_active=False, usage_limit=1, usage_count=1, min_order_amount=Decimal("999"))
        assert validate_coupon("WELCOME", Decimal("10"), coupon, now=NOW).reason == "inactive"

    def test_percentage_with_cap(self):
        coupon = _coupon(discount_value=Decimal("25"), max_discount=Decimal("50"))
        result = validate_coupon("WELCOME", Decimal("400"), coupon, now=NOW)
        assert result.discount_amount == Decimal("50.00")

    def test_fixed_is_clamped_to_subtotal(self):
        coupon = _coupon(discount_type=DiscountType.FIXED, discount_value=Decimal("100"))
        result = validate_coupon("WELCOME", Decimal("80"), coupon, now=NOW)
        assert result.discount_amount == Decimal("80.00")

    def test_deterministic(self):
        coupon = _coupon(usage_limit=3, usage_count=1)
        results = {
            (r.valid, r.reason, r.discount_amount)
            for r in (validate_coupon("WELCOME", Decimal("120"), coupon, now=NOW) for _ in range(5))
        }
        assert len(results) == 1


class TestUsageAccounting:
    def test_codes_stored_uppercase(self, db_session):
        db_session.add(_coupon(code="  summer10 "))
        db_session.commit()
        assert get_coupon_by_code(db_session, "Summer10").code == "SUMMER10"

    def test_increment_returns_new_count(self, db_session):
        db_session.add(_coupon(usage_count=4))
        db_session.commit()

        assert increment_usage(db_session, "welcome") == 5
        db_session.commit()
        assert increment_usage(db_session, "WELCOME") == 6
        db_session.commit()

        assert get_coupon_by_code(db_session, "WELCOME").usage_count == 6

    def test_increment_is_a_delta_not_a_stale_write(self, db_session):
        db_session.add(_coupon(usage_count=0))
        db_session.commit()
        # Loaded copy goes stale while the counter moves underneath it
        stale = get_coupon_by_code(db_session, "WELCOME")
        assert stale.usage_count == 0

        increment_usage(db_session, "WELCOME")
        increment_usage(db_session, "WELCOME")
        db_session.commit()

        db_session.refresh(stale)
        assert stale.usage_count == 2

    def test_increment_unknown_code(self, db_session):
        assert increment_usage(db_session, "MISSING") is None


class TestValidateEndpoint:
    def test_valid_coupon(self, client, percent_coupon):
        response = client.post("/api/v1/coupons/validate", json={"code": "save20", "cart_total": 150})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["discount_amount"] == 30.0
        assert data["coupon"]["code"] == "SAVE20"

    def test_validation_does_not_consume_uses(self, client, db_session, percent_coupon):
        for _ in range(3):
            client.post("/api/v1/coupons/validate", json={"code": "SAVE20", "cart_total": 150})
        db_session.refresh(percent_coupon)
        assert percent_coupon.usage_count == 0

    def test_unknown_code(self, client):
        response = client.post("/api/v1/coupons/validate", json={"code": "BOGUS", "cart_total": 150})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "invalid code"
        assert data["message"] == "Invalid coupon code"

    def test_missing_field_names_it(self, client):
        response = client.post("/api/v1/coupons/validate", json={"code": "SAVE20"})
        assert response.status_code == 400
        assert "cart_total" in response.json()["error"]


class TestCouponAdmin:
    def test_requires_auth(self, client):
        assert client.get("/api/v1/admin/coupons").status_code == 401

    def test_staff_forbidden(self, client, staff_headers):
        response = client.get("/api/v1/admin/coupons", headers=staff_headers)
        assert response.status_code == 403
        assert "error" in response.json()

    def test_crud(self, client, auth_headers):
        response = client.post(
            "/api/v1/admin/coupons",
            json={"code": "flat50", "discount_type": "FIXED", "discount_value": 50, "min_order_amount": 300},
            headers=auth_headers,
        )
        assert response.status_code == 201
        coupon = response.json()
        assert coupon["code"] == "FLAT50"
        assert coupon["usage_count"] == 0

        response = client.patch(
            f"/api/v1/admin/coupons/{coupon['id']}",
            json={"is_active": False},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        listing = client.get("/api/v1/admin/coupons", headers=auth_headers).json()
        assert listing["total"] == 1

        response = client.delete(f"/api/v1/admin/coupons/{coupon['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert client.get("/api/v1/admin/coupons", headers=auth_headers).json()["total"] == 0

    def test_duplicate_code_rejected(self, client, auth_headers, percent_coupon):
        response = client.post(
            "/api/v1/admin/coupons",
            json={"code": "save20", "discount_type": "PERCENTAGE", "discount_value": 5},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "already exists" in response.json()["error"]

    def test_percentage_over_100_rejected(self, client, auth_headers):
        response = client.post(
            "/api/v1/admin/coupons",
            json={"code": "TOO", "discount_type": "PERCENTAGE", "discount_value": 150},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["code", "discount_type", "discount_value", "min_order_amount", "is_active"])
    def test_update_null_required_field_rejected(self, client, db_session, auth_headers, percent_coupon, field):
        response = client.patch(
            f"/api/v1/admin/coupons/{percent_coupon.id}",
            json={field: None},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert field in response.json()["error"]
        db_session.refresh(percent_coupon)
        assert percent_coupon.discount_type == DiscountType.PERCENTAGE

    def test_update_percentage_over_100_rejected(self, client, db_session, auth_headers, percent_coupon):
        response = client.patch(
            f"/api/v1/admin/coupons/{percent_coupon.id}",
            json={"discount_value": 150},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "100" in response.json()["error"]
        db_session.refresh(percent_coupon)
        assert percent_coupon.discount_value == Decimal("20")

    def test_update_switching_fixed_to_percentage_checks_value(self, client, auth_headers):
        coupon = client.post(
            "/api/v1/admin/coupons",
            json={"code": "FLAT150", "discount_type": "FIXED", "discount_value": 150},
            headers=auth_headers,
        ).json()
        response = client.patch(
            f"/api/v1/admin/coupons/{coupon['id']}",
            json={"discount_type": "PERCENTAGE"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_update_window_must_stay_ordered(self, client, auth_headers, percent_coupon):
        client.patch(
            f"/api/v1/admin/coupons/{percent_coupon.id}",
            json={"valid_from": "2026-06-01T00:00:00Z"},
            headers=auth_headers,
        )
        response = client.patch(
            f"/api/v1/admin/coupons/{percent_coupon.id}",
            json={"valid_until": "2026-05-01T00:00:00Z"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "valid_until" in response.json()["error"]
