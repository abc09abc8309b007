# =============================================================================
# tests/test_coupons.py - Coupon Validation Tests
# =============================================================================
# Tests for the coupon rules (first failing rule wins), discount math,
# and usage bookkeeping after payment.
#
# Run with: pytest tests/test_coupons.py -v
# =============================================================================

from datetime import datetime, timezone

import pytest

from app.exceptions import BadRequestError, RecordNotFoundError
from core.services.coupon_service import (
    CouponService,
    calculate_discount,
    evaluate_coupon,
    format_amount,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Rule Evaluation
# =============================================================================

class TestEvaluateCoupon:
    """Tests for evaluate_coupon (no database)."""

    def test_valid_coupon(self, sample_coupon):
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) is None

    def test_inactive(self, sample_coupon):
        sample_coupon["is_active"] = False
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == "This coupon is no longer active"

    def test_not_yet_valid(self, sample_coupon):
        sample_coupon["valid_from"] = "2025-07-01T00:00:00+00:00"
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == "This coupon is not yet valid"

    def test_expired(self, sample_coupon):
        sample_coupon["valid_until"] = "2025-05-31T23:59:59Z"
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == "This coupon has expired"

    def test_expired_with_short_fractional_seconds(self, sample_coupon):
        sample_coupon["valid_until"] = "2025-05-31T10:00:00.5+00:00"
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == "This coupon has expired"

    @pytest.mark.parametrize("key, error", [
        ("valid_until", "This coupon has expired"),
        ("valid_from", "This coupon is not yet valid"),
    ])
    def test_unreadable_window_closes_coupon(self, sample_coupon, key, error):
        sample_coupon[key] = "end of summer"
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == error

    def test_max_uses_reached(self, sample_coupon):
        sample_coupon["uses_count"] = 100
        assert evaluate_coupon(sample_coupon, 1499, now=NOW) == "This coupon has reached its maximum number of uses"

    def test_minimum_purchase(self, sample_coupon):
        assert evaluate_coupon(sample_coupon, 300, now=NOW) == "Minimum purchase of ₹500 required"

    def test_first_failing_rule_is_reported(self, sample_coupon):
        """Inactive and expired: the active check comes first."""
        # Arrange
        sample_coupon["is_active"] = False
        sample_coupon["valid_until"] = "2020-01-01T00:00:00Z"

        # Act
        error = evaluate_coupon(sample_coupon, 10, now=NOW)

        # Assert
        assert error == "This coupon is no longer active"

    def test_open_ended_coupon(self, sample_coupon):
        """No dates, no max uses, no minimum."""
        for key in ("valid_from", "valid_until", "max_uses", "min_purchase_amount"):
            sample_coupon[key] = None
        assert evaluate_coupon(sample_coupon, 1, now=NOW) is None


class TestDiscountMath:

    def test_percentage(self):
        coupon = {"discount_type": "percentage", "discount_value": 10}
        assert calculate_discount(coupon, 1499) == 149.9

    def test_flat(self):
        coupon = {"discount_type": "flat", "discount_value": "200"}
        assert calculate_discount(coupon, 1499) == 200.0

    def test_format_amount(self):
        assert format_amount(500.0) == "500"
        assert format_amount("499.5") == "499.5"


# =============================================================================
# Service
# =============================================================================

class TestValidateCoupon:
    """Tests for CouponService.validate_coupon against the fake database."""

    def test_valid_code_is_case_insensitive(self, fake_db, sample_coupon):
        # Arrange
        fake_db.seed("discount_coupons", sample_coupon)

        # Act
        result = CouponService.validate_coupon(" otaku10 ", 1000)

        # Assert
        assert result["valid"] is True
        assert result["coupon"]["code"] == "OTAKU10"
        assert result["coupon"]["discountAmount"] == 100.0
        assert result["coupon"]["discountType"] == "percentage"
        assert result["coupon"]["freeShipping"] is False

    def test_unknown_code(self, fake_db):
        assert CouponService.validate_coupon("NOPE", 1000) == {"valid": False, "error": "Invalid coupon code"}

    def test_missing_code(self, fake_db):
        with pytest.raises(BadRequestError) as exc_info:
            CouponService.validate_coupon("  ", 1000)
        assert exc_info.value.message == "Coupon code is required"

    def test_rule_failure_is_not_an_error(self, fake_db, sample_coupon):
        fake_db.seed("discount_coupons", sample_coupon)
        result = CouponService.validate_coupon("OTAKU10", 100)
        assert result == {"valid": False, "error": "Minimum purchase of ₹500 required"}

    def test_buyer_already_used_coupon(self, fake_db, sample_coupon):
        # Arrange
        fake_db.seed("discount_coupons", sample_coupon)
        fake_db.seed("coupon_usage", {"coupon_id": "coupon-1", "user_email": "asha@example.com"})

        # Act
        result = CouponService.validate_coupon("OTAKU10", 1000, user_email="asha@example.com")

        # Assert
        assert result == {"valid": False, "error": "You have already used this coupon"}

    def test_other_buyer_can_use_coupon(self, fake_db, sample_coupon):
        fake_db.seed("discount_coupons", sample_coupon)
        fake_db.seed("coupon_usage", {"coupon_id": "coupon-1", "user_email": "asha@example.com"})

        result = CouponService.validate_coupon("OTAKU10", 1000, user_email="ravi@example.com")

        assert result["valid"] is True


class TestPublicCoupon:

    def test_active_coupon(self, fake_db, sample_coupon):
        fake_db.seed("discount_coupons", sample_coupon)
        assert CouponService.get_public_coupon("otaku10")["code"] == "OTAKU10"

    def test_inactive_coupon_is_hidden(self, fake_db, sample_coupon):
        sample_coupon["is_active"] = False
        fake_db.seed("discount_coupons", sample_coupon)
        with pytest.raises(RecordNotFoundError):
            CouponService.get_public_coupon("OTAKU10")


class TestRecordUsage:
    """Coupon bookkeeping after a verified payment."""

    def test_records_usage_and_bumps_count(self, fake_db, sample_coupon, sample_order):
        # Arrange
        fake_db.seed("discount_coupons", sample_coupon)
        sample_order.update({"coupon_code": "OTAKU10", "discount": 149.9})

        # Act
        CouponService.record_usage(sample_order)

        # Assert
        usage = fake_db.rows("coupon_usage")
        assert len(usage) == 1
        assert usage[0]["coupon_id"] == "coupon-1"
        assert usage[0]["user_email"] == "asha@example.com"
        assert usage[0]["discount_amount"] == 149.9
        assert fake_db.rows("discount_coupons")[0]["uses_count"] == 4

    def test_no_coupon_is_a_noop(self, fake_db, sample_order):
        CouponService.record_usage(sample_order)
        assert fake_db.calls == []

    def test_failures_do_not_raise(self, fake_db, sample_coupon, sample_order):
        # Arrange
        fake_db.seed("discount_coupons", sample_coupon)
        fake_db.fail("coupon_usage", "insert")
        sample_order["coupon_code"] = "OTAKU10"

        # Act: must not raise
        CouponService.record_usage(sample_order)

        # Assert: count untouched
        assert fake_db.rows("discount_coupons")[0]["uses_count"] == 3
