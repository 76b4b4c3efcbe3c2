"""Booking placement service.

Turns an order (event, ticket mix, buyer, optional coupon, referral, and
points) into a priced booking, and moves bookings through confirmation and
check-in.
"""

import logging
import secrets
import string
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from django_eventbook.bookings.models import Booking
from django_eventbook.bookings.services.lifecycle import transition_status
from django_eventbook.bookings.signals import booking_confirmed
from django_eventbook.loyalty.services.ledger import LoyaltyService
from django_eventbook.pricing.discounts import DiscountResult
from django_eventbook.pricing.services.automatic import evaluate_automatic, evaluate_referral
from django_eventbook.pricing.services.composer import compose
from django_eventbook.pricing.services.coupons import CouponService
from django_eventbook.settings import get_config

if TYPE_CHECKING:
    from django_eventbook.events.models import Event

logger = logging.getLogger(__name__)


def _generate_reference() -> str:
    """Generate a booking reference using the configured prefix.

    The prefix is set via ``DJANGO_EVENTBOOK["bookings"]["reference_prefix"]``
    (default ``"BKG"``), producing references like ``BKG-A1B2C3D4``.
    """
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(chars) for _ in range(8))
    return f"{get_config().bookings.reference_prefix}-{suffix}"


class BookingService:
    """Stateless service for placing, confirming, and checking in bookings."""

    @staticmethod
    @transaction.atomic
    def place_booking(
        event: "Event",
        *,
        user_id: str,
        tickets: Mapping[str, int],
        user_email: str = "",
        attendee_name: str = "",
        attendee_email: str = "",
        coupon_code: str = "",
        referred_by: str = "",
        points_to_use: int = 0,
        now: datetime | None = None,
    ) -> Booking:
        """Create a priced, pending booking.

        The subtotal comes from the event's ticket prices. Early-bird and
        group discounts apply automatically; a referred buyer's first booking
        gets the referee discount. A coupon is redeemed against the new
        booking's reference, and loyalty points are spent up to the
        configured share of the order but never beyond what the other
        discounts leave to pay. Everything happens in one transaction, so a
        rejected coupon or failed point redemption leaves nothing behind.

        Args:
            event: The event to book.
            user_id: The buyer's user id.
            tickets: Mapping of ticket type slug to quantity.
            user_email: The buyer's email.
            attendee_name: Name printed on the booking.
            attendee_email: Contact email of the attendee.
            coupon_code: Optional coupon code.
            referred_by: User id of the referrer, if any.
            points_to_use: Loyalty points the buyer wants to spend.
            now: Placement time. Defaults to the current time.

        Returns:
            The new booking with PENDING status.

        Raises:
            ValidationError: If the event is not bookable, the ticket mix is
                empty or malformed, the coupon is rejected, or the points
                cannot be redeemed.
        """
        if not user_id:
            raise ValidationError("A user id is required.", code="missing_user_id")
        if not event.is_published:
            raise ValidationError(f"Event '{event.slug}' is not open for booking.", code="event_unavailable")
        if not tickets or any(not isinstance(qty, int) or qty < 0 for qty in tickets.values()):
            raise ValidationError("Ticket counts must be non-negative integers.", code="invalid_ticket_counts")
        tickets = {slug: qty for slug, qty in tickets.items() if qty > 0}
        if not tickets:
            raise ValidationError("A booking needs at least one ticket.", code="invalid_ticket_counts")

        now = now or timezone.now()
        subtotal = event.order_subtotal(tickets)

        while True:
            try:
                with transaction.atomic():
                    booking = Booking.objects.create(
                        reference=_generate_reference(),
                        user_id=user_id,
                        user_email=user_email,
                        event=event,
                        event_title=event.name,
                        event_date=event.starts_at,
                        tickets=tickets,
                        attendee_name=attendee_name,
                        attendee_email=attendee_email or user_email,
                        subtotal=subtotal,
                        total_amount=subtotal,
                        referred_by=referred_by,
                    )
                break
            except IntegrityError:
                continue

        automatic: list[DiscountResult] = list(evaluate_automatic(event, tickets, subtotal, now=now))
        if referred_by and referred_by != user_id:
            is_first_booking = not Booking.objects.filter(user_id=user_id).exclude(pk=booking.pk).exists()
            automatic.append(evaluate_referral(subtotal, is_first_booking=is_first_booking))

        coupon = None
        if coupon_code:
            coupon = CouponService.redeem(
                coupon_code,
                event=event,
                user_id=user_id,
                booking_id=booking.reference,
                order_amount=subtotal,
                ticket_counts=tickets,
                now=now,
            )
            if not coupon.is_valid:
                raise ValidationError(coupon.message, code="coupon_rejected")

        if points_to_use:
            # Points only pay for what the other discounts leave payable.
            payable = compose(subtotal, coupon=coupon, automatic=automatic).final_amount
            available = LoyaltyService.available_points(user_id, now=now)
            points_discount = LoyaltyService.quote_points_discount(
                min(points_to_use, available), subtotal, payable=payable
            )
            if points_discount.is_valid:
                redemption = LoyaltyService.redeem_points(
                    user_id,
                    points_discount.points_used,
                    booking.reference,
                    f"Points applied to booking {booking.reference}",
                    now=now,
                )
                if not redemption.success:
                    raise ValidationError(redemption.message, code="insufficient_points")
                automatic.append(points_discount)

        quote = compose(subtotal, coupon=coupon, automatic=automatic)
        booking.discount_amount = quote.total_discount
        booking.total_amount = quote.final_amount
        booking.coupon_code = coupon.code if coupon is not None else ""
        booking.referral_discount = quote.discount_for("referral")
        booking.save(update_fields=["discount_amount", "total_amount", "coupon_code", "referral_discount", "updated_at"])

        logger.info(
            "Booking %s placed by %s for %s: subtotal %s, discount %s, total %s",
            booking.reference,
            user_id,
            event.slug,
            subtotal,
            quote.total_discount,
            quote.final_amount,
        )
        return booking

    @staticmethod
    @transaction.atomic
    def confirm_booking(booking: Booking) -> Booking:
        """Confirm a pending booking and fire ``booking_confirmed``.

        Loyalty accrual and referral rewards hang off the signal, so they
        commit or roll back together with the confirmation.

        Raises:
            ValidationError: If the booking is not pending.
        """
        booking = Booking.objects.select_for_update().get(pk=booking.pk)
        transition_status(booking, Booking.Status.CONFIRMED)
        booking.save(update_fields=["status", "updated_at"])
        logger.info("Booking %s confirmed", booking.reference)
        booking_confirmed.send(sender=Booking, booking=booking)
        return booking

    @staticmethod
    @transaction.atomic
    def check_in(booking: Booking) -> Booking:
        """Mark a confirmed booking as checked in.

        Raises:
            ValidationError: If the booking is not confirmed.
        """
        booking = Booking.objects.select_for_update().get(pk=booking.pk)
        transition_status(booking, Booking.Status.CHECKED_IN)
        booking.save(update_fields=["status", "updated_at"])
        logger.info("Booking %s checked in", booking.reference)
        return booking
