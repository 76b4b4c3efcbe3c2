"""Automatic discounts that apply without a coupon code.

Every function here is a pure function of the event and the order: nothing is
read from or written to shared state beyond the event's own fields, so the
evaluators are safe to call speculatively on every page render.
"""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from django_eventbook.pricing.discounts import ZERO, EarlyBirdDiscount, GroupDiscount, ReferralDiscount, to_money
from django_eventbook.settings import get_config

if TYPE_CHECKING:
    from django_eventbook.events.models import Event


def evaluate_early_bird(event: "Event", order_amount: Decimal, now: datetime | None = None) -> EarlyBirdDiscount:
    """Return the early-bird discount for an order placed at ``now``.

    Applies while ``now`` is strictly before the event's early-bird deadline.
    The percentage comes from the event, falling back to the configured
    default.
    """
    now = now or timezone.now()
    deadline = event.early_bird_deadline
    if deadline is None or now >= deadline:
        return EarlyBirdDiscount(
            message="Early bird discount not available",
            is_valid=False,
            reason="not_available",
        )

    percentage = event.early_bird_percentage
    if percentage is None:
        percentage = get_config().pricing.early_bird_percentage
    return EarlyBirdDiscount(
        discount_amount=to_money(order_amount * percentage / Decimal(100)),
        discount_percentage=percentage,
        message=f"Early Bird Special: {percentage.normalize():f}% off! Offer expires on {deadline.date().isoformat()}",
    )


def evaluate_group(ticket_counts: Mapping[str, int], order_amount: Decimal) -> GroupDiscount:
    """Return the group discount for an order's total ticket count.

    The configured tiers are ``(minimum tickets, percentage)`` pairs; the
    highest tier the order reaches applies.
    """
    total_tickets = sum(ticket_counts.values())
    tiers = get_config().pricing.group_discount_tiers

    percentage = None
    threshold = 0
    for min_tickets, tier_percentage in tiers:
        if total_tickets >= min_tickets:
            percentage = tier_percentage
            threshold = min_tickets

    if percentage is None:
        minimum = tiers[0][0] if tiers else 0
        return GroupDiscount(
            ticket_count=total_tickets,
            message=f"Group discount requires minimum {minimum} tickets",
            is_valid=False,
            reason="below_minimum",
        )

    return GroupDiscount(
        ticket_count=total_tickets,
        discount_amount=to_money(order_amount * percentage / Decimal(100)),
        discount_percentage=percentage,
        message=f"Group Discount: {percentage.normalize():f}% off for {threshold}+ tickets!",
    )


def evaluate_referral(order_amount: Decimal, *, is_first_booking: bool) -> ReferralDiscount:
    """Return the referred buyer's first-booking discount."""
    if not is_first_booking:
        return ReferralDiscount(
            message="Referral discount applies to a first booking only",
            is_valid=False,
            reason="not_first_booking",
        )
    percentage = get_config().pricing.referee_discount_percentage
    return ReferralDiscount(
        discount_amount=to_money(order_amount * percentage / Decimal(100)),
        discount_percentage=percentage,
        message=f"Referral bonus: {percentage.normalize():f}% off your first booking!",
    )


def evaluate_automatic(
    event: "Event",
    ticket_counts: Mapping[str, int],
    order_amount: Decimal,
    now: datetime | None = None,
) -> list[EarlyBirdDiscount | GroupDiscount]:
    """Evaluate every automatic discount for an order.

    Returns all results, applicable or not; the composer skips invalid ones.
    """
    if order_amount <= ZERO:
        return []
    return [
        evaluate_early_bird(event, order_amount, now=now),
        evaluate_group(ticket_counts, order_amount),
    ]
