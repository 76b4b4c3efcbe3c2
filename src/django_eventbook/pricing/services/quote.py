"""Order quoting: the read-only pricing pipeline shown before checkout."""

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.utils import timezone

from django_eventbook.loyalty.services.ledger import LoyaltyService
from django_eventbook.pricing.discounts import DiscountResult
from django_eventbook.pricing.services.automatic import evaluate_automatic, evaluate_referral
from django_eventbook.pricing.services.composer import PriceQuote, compose
from django_eventbook.pricing.services.coupons import CouponService

if TYPE_CHECKING:
    from django_eventbook.events.models import Event


def quote_order(
    event: "Event",
    ticket_counts: Mapping[str, int],
    *,
    user_id: str,
    coupon_code: str = "",
    referred_first_booking: bool = False,
    points_to_use: int = 0,
    now: datetime | None = None,
) -> PriceQuote:
    """Price an order with every discount it qualifies for, without side effects.

    The coupon is only validated, not redeemed, and loyalty points are only
    quoted, not deducted; the same inputs always produce the same quote.

    Args:
        event: The event being booked.
        ticket_counts: Mapping of ticket type slug to quantity.
        user_id: The buyer's user id.
        coupon_code: Optional coupon code entered by the buyer.
        referred_first_booking: Whether the buyer arrived through a referral
            and has no earlier booking.
        points_to_use: Loyalty points the buyer wants to spend.
        now: Evaluation time. Defaults to the current time.

    Returns:
        The composed :class:`PriceQuote`.

    Raises:
        ValidationError: If the ticket mix is empty or malformed.
    """
    now = now or timezone.now()
    if not ticket_counts or sum(ticket_counts.values()) <= 0:
        raise ValidationError("An order needs at least one ticket.", code="invalid_ticket_counts")

    order_amount = event.order_subtotal(ticket_counts)

    automatic: list[DiscountResult] = list(evaluate_automatic(event, ticket_counts, order_amount, now=now))
    if referred_first_booking:
        automatic.append(evaluate_referral(order_amount, is_first_booking=True))

    coupon = None
    if coupon_code:
        coupon = CouponService.validate(
            coupon_code,
            event=event,
            user_id=user_id,
            order_amount=order_amount,
            ticket_counts=ticket_counts,
            now=now,
        )

    if points_to_use:
        payable = compose(order_amount, coupon=coupon, automatic=automatic).final_amount
        available = LoyaltyService.available_points(user_id, now=now)
        automatic.append(
            LoyaltyService.quote_points_discount(min(points_to_use, available), order_amount, payable=payable)
        )

    return compose(order_amount, coupon=coupon, automatic=automatic)
