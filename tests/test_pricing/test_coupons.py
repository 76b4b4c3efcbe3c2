"""Tests for CouponService validation, redemption, and discount maths."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from django_eventbook.events.models import Event, TicketType
from django_eventbook.pricing.discounts import CouponDiscount
from django_eventbook.pricing.models import Coupon, CouponUsage
from django_eventbook.pricing.services.coupons import CouponService

NOW = datetime(2027, 3, 1, 12, tzinfo=UTC)


def _make_coupon(code="SAVE20", **overrides):
    fields = {
        "discount_type": Coupon.DiscountType.PERCENTAGE,
        "discount_value": Decimal("20"),
        "valid_from": datetime(2027, 1, 1, tzinfo=UTC),
        "valid_until": datetime(2027, 12, 31, tzinfo=UTC),
        "max_uses": 100,
    }
    fields.update(overrides)
    return Coupon.objects.create(code=code, **fields)


def _validate(event, code="SAVE20", *, user_id="USER-1", amount=Decimal("200.00"), tickets=None, now=NOW):
    return CouponService.validate(
        code,
        event=event,
        user_id=user_id,
        order_amount=amount,
        ticket_counts=tickets if tickets is not None else {"standard": 2},
        now=now,
    )


def _redeem(event, code="SAVE20", *, booking_id="BKG-1", user_id="USER-1", amount=Decimal("200.00"), tickets=None):
    return CouponService.redeem(
        code,
        event=event,
        user_id=user_id,
        booking_id=booking_id,
        order_amount=amount,
        ticket_counts=tickets if tickets is not None else {"standard": 2},
        now=NOW,
    )


@pytest.fixture
def event(db):
    event = Event.objects.create(
        name="PyCon US 2027",
        slug="pycon-us-2027",
        category="conference",
        starts_at=datetime(2027, 5, 14, tzinfo=UTC),
    )
    TicketType.objects.create(event=event, name="Standard", slug="standard", price=Decimal("100.00"))
    TicketType.objects.create(event=event, name="VIP", slug="vip", price=Decimal("250.00"))
    return event


@pytest.fixture
def other_event(db):
    return Event.objects.create(
        name="Jazz Night",
        slug="jazz-night",
        category="music",
        starts_at=datetime(2027, 6, 1, tzinfo=UTC),
    )


# -- Input validation ---------------------------------------------------------


@pytest.mark.django_db
class TestInputValidation:
    def test_blank_code_raises(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _validate(event, code="  ")
        assert exc_info.value.code == "missing_coupon_code"

    def test_missing_user_raises(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _validate(event, user_id="")
        assert exc_info.value.code == "missing_user_id"

    def test_float_amount_raises(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _validate(event, amount=200.0)
        assert exc_info.value.code == "invalid_order_amount"

    def test_negative_ticket_count_raises(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _validate(event, tickets={"standard": -1})
        assert exc_info.value.code == "invalid_ticket_counts"

    def test_redeem_requires_booking_id(self, event):
        _make_coupon()
        with pytest.raises(ValidationError) as exc_info:
            _redeem(event, booking_id="")
        assert exc_info.value.code == "missing_booking_id"


# -- Eligibility checks -------------------------------------------------------


@pytest.mark.django_db
class TestValidate:
    def test_valid_percentage_coupon(self, event):
        _make_coupon()
        result = _validate(event)
        assert result.is_valid
        assert result.discount_amount == Decimal("40.00")
        assert result.discount_percentage == Decimal("20")
        assert result.message == "Coupon applied successfully! You saved $40.00"

    def test_lookup_is_case_insensitive(self, event):
        _make_coupon()
        assert _validate(event, code="save20").is_valid

    def test_code_is_stored_upper_case(self, event):
        coupon = _make_coupon(code="summer")
        assert coupon.code == "SUMMER"

    def test_validate_does_not_mutate(self, event):
        coupon = _make_coupon()
        _validate(event)
        coupon.refresh_from_db()
        assert coupon.current_uses == 0
        assert not CouponUsage.objects.exists()

    def test_unknown_code(self, event):
        result = _validate(event, code="NOPE")
        assert not result.is_valid
        assert result.reason == "not_found"
        assert result.message == "Invalid coupon code"

    def test_inactive(self, event):
        _make_coupon(is_active=False)
        assert _validate(event).reason == "inactive"

    def test_not_yet_valid(self, event):
        _make_coupon(valid_from=datetime(2027, 4, 1, tzinfo=UTC))
        assert _validate(event).reason == "not_yet_valid"

    def test_expired(self, event):
        _make_coupon(valid_until=datetime(2027, 2, 1, tzinfo=UTC))
        result = _validate(event)
        assert result.reason == "expired"
        assert result.message == "This coupon has expired"

    def test_early_bird_coupon_after_its_end_date(self, event):
        _make_coupon(is_early_bird=True, early_bird_end_date=datetime(2027, 2, 15, tzinfo=UTC))
        assert _validate(event).reason == "early_bird_ended"

    def test_minimum_order(self, event):
        _make_coupon(minimum_order_amount=Decimal("500.00"))
        result = _validate(event)
        assert result.reason == "minimum_order"
        assert result.message == "Minimum order amount of $500.00 required"

    def test_event_not_applicable(self, event, other_event):
        coupon = _make_coupon()
        coupon.applicable_events.add(other_event)
        assert _validate(event).reason == "event_not_applicable"

    def test_event_listed(self, event, other_event):
        coupon = _make_coupon()
        coupon.applicable_events.add(other_event, event)
        assert _validate(event).is_valid

    def test_category_is_an_alternative_to_events(self, event, other_event):
        coupon = _make_coupon(applicable_categories=["conference"])
        coupon.applicable_events.add(other_event)
        assert _validate(event).is_valid

    def test_category_mismatch(self, event):
        _make_coupon(applicable_categories=["music"])
        assert _validate(event).reason == "event_not_applicable"

    def test_ticket_type_not_applicable(self, event):
        _make_coupon(applicable_ticket_types=["vip"])
        assert _validate(event).reason == "ticket_type_not_applicable"

    def test_usage_limit(self, event):
        _make_coupon(max_uses=1, current_uses=1)
        result = _validate(event)
        assert result.reason == "usage_limit"
        assert result.message == "This coupon has reached its usage limit"

    def test_user_limit(self, event):
        coupon = _make_coupon()
        CouponUsage.objects.create(
            coupon=coupon,
            user_id="USER-1",
            booking_id="BKG-OLD",
            discount_amount=Decimal("10.00"),
            used_at=NOW,
        )
        assert _validate(event).reason == "user_limit"
        assert _validate(event, user_id="USER-2").is_valid

    def test_unlimited_per_user(self, event):
        coupon = _make_coupon(max_uses_per_user=None)
        CouponUsage.objects.create(
            coupon=coupon,
            user_id="USER-1",
            booking_id="BKG-OLD",
            discount_amount=Decimal("10.00"),
            used_at=NOW,
        )
        assert _validate(event).is_valid

    def test_checks_short_circuit_in_order(self, event):
        _make_coupon(is_active=False, valid_until=datetime(2027, 2, 1, tzinfo=UTC), max_uses=1, current_uses=1)
        assert _validate(event).reason == "inactive"


# -- Discount maths -----------------------------------------------------------


@pytest.mark.django_db
class TestDiscountAmounts:
    def test_percentage_rounds_half_up_to_cents(self, event):
        _make_coupon(discount_value=Decimal("12.5"))
        assert _validate(event, amount=Decimal("10.05")).discount_amount == Decimal("1.26")

    def test_fixed_amount(self, event):
        _make_coupon(discount_type=Coupon.DiscountType.FIXED_AMOUNT, discount_value=Decimal("25.00"))
        result = _validate(event)
        assert result.discount_amount == Decimal("25.00")
        assert result.discount_percentage is None

    def test_fixed_amount_never_exceeds_order(self, event):
        _make_coupon(discount_type=Coupon.DiscountType.FIXED_AMOUNT, discount_value=Decimal("500.00"))
        assert _validate(event, amount=Decimal("200.00")).discount_amount == Decimal("200.00")

    def test_buy_x_get_y_frees_cheapest_tickets(self, event):
        _make_coupon(
            discount_type=Coupon.DiscountType.BUY_X_GET_Y,
            discount_value=Decimal("0"),
            buy_quantity=2,
            get_quantity=1,
        )
        result = _validate(event, amount=Decimal("1150.00"), tickets={"standard": 4, "vip": 3})
        # floor(7 / 2) * 1 = 3 free tickets, all at the standard price.
        assert result.discount_amount == Decimal("300.00")

    def test_buy_x_get_y_only_counts_applicable_types(self, event):
        _make_coupon(
            discount_type=Coupon.DiscountType.BUY_X_GET_Y,
            discount_value=Decimal("0"),
            buy_quantity=2,
            get_quantity=1,
            applicable_ticket_types=["vip"],
        )
        result = _validate(event, amount=Decimal("1150.00"), tickets={"standard": 4, "vip": 3})
        assert result.discount_amount == Decimal("250.00")

    def test_buy_x_get_y_free_tickets_spill_into_pricier_types(self, event):
        _make_coupon(
            discount_type=Coupon.DiscountType.BUY_X_GET_Y,
            discount_value=Decimal("0"),
            buy_quantity=2,
            get_quantity=1,
        )
        result = _validate(event, amount=Decimal("1350.00"), tickets={"standard": 1, "vip": 5})
        # 3 free tickets: the single standard one, then two VIP.
        assert result.discount_amount == Decimal("600.00")

    def test_buy_x_get_y_handles_very_large_quantities(self, event):
        _make_coupon(
            discount_type=Coupon.DiscountType.BUY_X_GET_Y,
            discount_value=Decimal("0"),
            buy_quantity=2,
            get_quantity=1,
        )
        tickets = {"standard": 10_000_000, "vip": 1}
        result = _validate(event, amount=Decimal("1000000250.00"), tickets=tickets)
        assert result.discount_amount == Decimal("500000000.00")

    def test_buy_x_get_y_below_buy_quantity_gives_nothing(self, event):
        _make_coupon(
            discount_type=Coupon.DiscountType.BUY_X_GET_Y,
            discount_value=Decimal("0"),
            buy_quantity=3,
            get_quantity=1,
        )
        result = _validate(event, tickets={"standard": 2})
        assert result.is_valid
        assert result.discount_amount == Decimal("0.00")


# -- Redemption ---------------------------------------------------------------


@pytest.mark.django_db
class TestRedeem:
    def test_records_usage_and_increments(self, event):
        coupon = _make_coupon()
        result = _redeem(event)
        assert result.is_valid
        coupon.refresh_from_db()
        assert coupon.current_uses == 1
        usage = coupon.usages.get()
        assert (usage.user_id, usage.booking_id, usage.discount_amount) == ("USER-1", "BKG-1", Decimal("40.00"))

    def test_replay_for_same_booking_does_not_count_twice(self, event):
        coupon = _make_coupon(max_uses_per_user=1)
        first = _redeem(event)
        second = _redeem(event)
        assert second.is_valid
        assert second.discount_amount == first.discount_amount
        coupon.refresh_from_db()
        assert coupon.current_uses == 1
        assert coupon.usages.count() == 1

    def test_failed_check_does_not_mutate(self, event):
        coupon = _make_coupon(minimum_order_amount=Decimal("500.00"))
        result = _redeem(event)
        assert result.reason == "minimum_order"
        coupon.refresh_from_db()
        assert coupon.current_uses == 0
        assert not coupon.usages.exists()

    def test_cap_is_never_exceeded(self, event):
        coupon = _make_coupon(max_uses=2, max_uses_per_user=None)
        results = [_redeem(event, booking_id=f"BKG-{i}", user_id=f"USER-{i}") for i in range(4)]
        assert [r.is_valid for r in results] == [True, True, False, False]
        assert results[2].reason == "usage_limit"
        coupon.refresh_from_db()
        assert coupon.current_uses == 2
        assert coupon.remaining_uses == 0

    def test_per_user_cap_across_bookings(self, event):
        _make_coupon(max_uses_per_user=1)
        assert _redeem(event, booking_id="BKG-1").is_valid
        assert _redeem(event, booking_id="BKG-2").reason == "user_limit"

    def test_losing_a_race_is_rejected_without_writing(self, event):
        coupon = _make_coupon(max_uses=1)
        Coupon.objects.filter(pk=coupon.pk).update(current_uses=1)
        stale_pass = CouponDiscount(code="SAVE20", discount_type="percentage", discount_amount=Decimal("40.00"))
        with patch("django_eventbook.pricing.services.coupons._evaluate", return_value=stale_pass):
            result = _redeem(event)
        assert not result.is_valid
        assert result.reason == "usage_limit"
        coupon.refresh_from_db()
        assert coupon.current_uses == 1
        assert not coupon.usages.exists()

    def test_database_rejects_uses_over_cap(self, event):
        coupon = _make_coupon(max_uses=1)
        with pytest.raises(IntegrityError), transaction.atomic():
            Coupon.objects.filter(pk=coupon.pk).update(current_uses=2)

    def test_unlimited_coupon(self, event):
        coupon = _make_coupon(max_uses=None, max_uses_per_user=None)
        for i in range(3):
            assert _redeem(event, booking_id=f"BKG-{i}").is_valid
        coupon.refresh_from_db()
        assert coupon.current_uses == 3
        assert coupon.remaining_uses is None


def test_as_dict_shape():
    result = CouponDiscount(
        code="SAVE20",
        discount_type="percentage",
        discount_amount=Decimal("40.00"),
        discount_percentage=Decimal("20"),
        message="ok",
    )
    assert result.as_dict() == {
        "type": "coupon",
        "code": "SAVE20",
        "discountType": "percentage",
        "discountAmount": 40.0,
        "discountPercentage": 20.0,
        "message": "ok",
        "isValid": True,
    }
