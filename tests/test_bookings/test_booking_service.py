"""Tests for placing, confirming, and checking in bookings."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings

from django_eventbook.bookings.models import Booking
from django_eventbook.bookings.services.booking import BookingService
from django_eventbook.bookings.signals import booking_confirmed
from django_eventbook.events.models import Event, TicketType
from django_eventbook.loyalty.models import LoyaltyEntry, ReferralReward
from django_eventbook.loyalty.services.ledger import LoyaltyService
from django_eventbook.pricing.models import Coupon, CouponUsage

NOW = datetime(2027, 3, 1, 12, tzinfo=UTC)


@pytest.fixture
def event(db):
    event = Event.objects.create(
        name="Summer Meetup",
        slug="summer-meetup",
        starts_at=datetime(2027, 7, 1, tzinfo=UTC),
    )
    TicketType.objects.create(event=event, name="Standard", slug="standard", price=Decimal("50.00"))
    return event


@pytest.fixture
def save20(db):
    return Coupon.objects.create(
        code="SAVE20",
        discount_type=Coupon.DiscountType.PERCENTAGE,
        discount_value=Decimal("20"),
        valid_from=datetime(2027, 1, 1, tzinfo=UTC),
        valid_until=datetime(2027, 12, 31, tzinfo=UTC),
    )


def _place(event, **kwargs):
    kwargs.setdefault("user_id", "USER-1")
    kwargs.setdefault("tickets", {"standard": 2})
    return BookingService.place_booking(event, now=NOW, **kwargs)


def _fixed_coupon(code, amount):
    return Coupon.objects.create(
        code=code,
        discount_type=Coupon.DiscountType.FIXED_AMOUNT,
        discount_value=Decimal(amount),
        valid_from=datetime(2027, 1, 1, tzinfo=UTC),
        valid_until=datetime(2027, 12, 31, tzinfo=UTC),
    )


@pytest.mark.django_db
class TestPlaceBooking:
    def test_creates_pending_booking(self, event):
        booking = _place(event, user_email="one@example.com", attendee_name="Ada Lovelace")

        assert booking.status == Booking.Status.PENDING
        assert booking.reference.startswith("BKG-")
        assert len(booking.reference) == 12
        assert booking.subtotal == Decimal("100.00")
        assert booking.total_amount == Decimal("100.00")
        assert booking.event_title == "Summer Meetup"
        assert booking.event_date == event.starts_at
        assert booking.attendee_email == "one@example.com"

    def test_zero_quantities_are_dropped(self, event):
        TicketType.objects.create(event=event, name="VIP", slug="vip", price=Decimal("120.00"))
        booking = _place(event, tickets={"standard": 1, "vip": 0})
        assert booking.tickets == {"standard": 1}

    def test_coupon_is_redeemed_against_the_booking(self, event, save20):
        booking = _place(event, coupon_code="save20")

        assert booking.discount_amount == Decimal("20.00")
        assert booking.total_amount == Decimal("80.00")
        assert booking.coupon_code == "SAVE20"
        save20.refresh_from_db()
        assert save20.current_uses == 1
        assert CouponUsage.objects.get().booking_id == booking.reference

    def test_rejected_coupon_leaves_nothing_behind(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _place(event, coupon_code="NOPE")
        assert exc_info.value.code == "coupon_rejected"
        assert not Booking.objects.exists()

    def test_group_discount(self, event):
        booking = _place(event, tickets={"standard": 6})
        assert booking.subtotal == Decimal("300.00")
        assert booking.total_amount == Decimal("255.00")

    def test_referred_first_booking_gets_referee_discount(self, event):
        booking = _place(event, referred_by="REFERRER")
        assert booking.referral_discount == Decimal("15.00")
        assert booking.total_amount == Decimal("85.00")

    def test_referee_discount_only_on_first_booking(self, event):
        _place(event)
        booking = _place(event, referred_by="REFERRER")
        assert booking.referral_discount == Decimal("0")
        assert booking.total_amount == Decimal("100.00")

    def test_self_referral_gets_no_discount(self, event):
        booking = _place(event, referred_by="USER-1")
        assert booking.referral_discount == Decimal("0")

    def test_points_are_spent(self, event):
        LoyaltyService.grant_manual_points("USER-1", 1000, "Welcome gift", now=NOW)
        booking = _place(event, points_to_use=500)

        assert booking.total_amount == Decimal("95.00")
        assert LoyaltyService.get_account("USER-1").balance == 500
        redemption = LoyaltyEntry.objects.get(reason=LoyaltyEntry.Reason.REDEMPTION)
        assert redemption.booking_id == booking.reference

    def test_points_are_limited_to_the_balance(self, event):
        LoyaltyService.grant_manual_points("USER-1", 300, "Welcome gift", now=NOW)
        booking = _place(event, points_to_use=5000)
        assert booking.total_amount == Decimal("97.00")
        assert LoyaltyService.get_account("USER-1").balance == 0

    def test_points_request_without_balance_is_ignored(self, event):
        booking = _place(event, points_to_use=500)
        assert booking.total_amount == Decimal("100.00")

    def test_points_are_not_spent_when_coupon_covers_the_order(self, event):
        _fixed_coupon("TAKE100", "100.00")
        LoyaltyService.grant_manual_points("USER-1", 10000, "Welcome gift", now=NOW)
        booking = _place(event, coupon_code="TAKE100", points_to_use=10000)

        assert booking.total_amount == Decimal("0.00")
        assert LoyaltyService.get_account("USER-1").balance == 10000
        assert not LoyaltyEntry.objects.filter(reason=LoyaltyEntry.Reason.REDEMPTION).exists()

    def test_points_only_cover_what_the_coupon_leaves(self, event):
        _fixed_coupon("TAKE80", "80.00")
        LoyaltyService.grant_manual_points("USER-1", 10000, "Welcome gift", now=NOW)
        booking = _place(event, coupon_code="TAKE80", points_to_use=10000)

        assert booking.total_amount == Decimal("0.00")
        assert LoyaltyService.get_account("USER-1").balance == 8000
        redemption = LoyaltyEntry.objects.get(reason=LoyaltyEntry.Reason.REDEMPTION)
        assert redemption.amount == -2000

    def test_every_discount_combined(self, event, save20):
        LoyaltyService.grant_manual_points("USER-1", 20000, "Welcome gift", now=NOW)
        booking = _place(
            event,
            tickets={"standard": 6},
            coupon_code="SAVE20",
            referred_by="REFERRER",
            points_to_use=20000,
        )

        # 300.00 less group 45.00, coupon 60.00 and referral 45.00 leaves 150.00 for points.
        assert booking.subtotal == Decimal("300.00")
        assert booking.referral_discount == Decimal("45.00")
        assert booking.discount_amount == Decimal("300.00")
        assert booking.total_amount == Decimal("0.00")
        assert LoyaltyService.get_account("USER-1").balance == 5000

    def test_missing_user(self, event):
        with pytest.raises(ValidationError) as exc_info:
            _place(event, user_id="")
        assert exc_info.value.code == "missing_user_id"

    def test_unpublished_event(self, event):
        event.is_published = False
        event.save()
        with pytest.raises(ValidationError) as exc_info:
            _place(event)
        assert exc_info.value.code == "event_unavailable"

    @pytest.mark.parametrize("tickets", [{}, {"standard": 0}, {"standard": -1}])
    def test_invalid_ticket_counts(self, event, tickets):
        with pytest.raises(ValidationError) as exc_info:
            _place(event, tickets=tickets)
        assert exc_info.value.code == "invalid_ticket_counts"

    def test_reference_prefix_setting(self, event):
        with override_settings(DJANGO_EVENTBOOK={"bookings": {"reference_prefix": "PYC"}}):
            booking = _place(event)
        assert booking.reference.startswith("PYC-")


@pytest.mark.django_db
class TestConfirmBooking:
    def test_confirmation_accrues_points(self, event):
        booking = BookingService.confirm_booking(_place(event, user_email="one@example.com"))

        assert booking.status == Booking.Status.CONFIRMED
        account = LoyaltyService.get_account("USER-1")
        assert account.balance == 100
        assert account.email == "one@example.com"
        assert LoyaltyEntry.objects.get().booking_id == booking.reference

    def test_confirmation_sends_signal(self, event):
        calls = []

        def handler(sender, booking, **kwargs):  # noqa: ARG001
            calls.append(booking.reference)

        booking_confirmed.connect(handler, sender=Booking, weak=False)
        try:
            booking = BookingService.confirm_booking(_place(event))
        finally:
            booking_confirmed.disconnect(handler, sender=Booking)
        assert calls == [booking.reference]

    def test_referrer_is_rewarded_on_confirmation(self, event):
        booking = BookingService.confirm_booking(_place(event, referred_by="REFERRER"))

        reward = ReferralReward.objects.get()
        assert reward.referrer_reward == Decimal("8.50")
        assert reward.referee_reward == Decimal("15.00")
        assert reward.booking_id == booking.reference
        assert LoyaltyService.get_account("REFERRER").balance == 850
        assert LoyaltyService.get_account("USER-1").balance == 85

    def test_confirming_twice_is_rejected(self, event):
        booking = BookingService.confirm_booking(_place(event))
        with pytest.raises(ValidationError) as exc_info:
            BookingService.confirm_booking(booking)
        assert exc_info.value.code == "invalid_transition"
        assert LoyaltyService.get_account("USER-1").balance == 100


@pytest.mark.django_db
class TestCheckIn:
    def test_confirmed_booking_checks_in(self, event):
        booking = BookingService.check_in(BookingService.confirm_booking(_place(event)))
        assert booking.status == Booking.Status.CHECKED_IN

    def test_pending_booking_cannot_check_in(self, event):
        with pytest.raises(ValidationError) as exc_info:
            BookingService.check_in(_place(event))
        assert exc_info.value.code == "invalid_transition"
