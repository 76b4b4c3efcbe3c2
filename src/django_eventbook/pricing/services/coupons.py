"""Coupon validation and redemption service.

Evaluates a coupon code against its eligibility rules and computes the
discount it grants. Validation is a pure preview; redemption performs the
same checks and records the usage as one atomic unit so concurrent requests
can never push a coupon past its usage cap.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.utils import timezone

from django_eventbook.pricing.discounts import ZERO, CouponDiscount, to_money
from django_eventbook.pricing.models import Coupon, CouponUsage
from django_eventbook.settings import get_config

if TYPE_CHECKING:
    from django_eventbook.events.models import Event

logger = logging.getLogger(__name__)


class CouponService:
    """Stateless service for coupon validation and redemption.

    Business-rule failures (expired, capped, ineligible) come back as a
    :class:`CouponDiscount` with ``is_valid=False``. Only malformed input
    raises ``ValidationError``.
    """

    @staticmethod
    def validate(
        code: str,
        *,
        event: "Event",
        user_id: str,
        order_amount: Decimal,
        ticket_counts: Mapping[str, int],
        now: datetime | None = None,
    ) -> CouponDiscount:
        """Check a coupon against an order without recording a redemption.

        Args:
            code: The coupon code as typed by the buyer (any case).
            event: The event being booked.
            user_id: The buyer's user id, used for the per-user cap.
            order_amount: The undiscounted order amount.
            ticket_counts: Mapping of ticket type slug to quantity.
            now: Evaluation time. Defaults to the current time.

        Returns:
            The coupon discount result, valid or rejected.

        Raises:
            ValidationError: If the code or user id is missing, or the order
                amount or ticket counts are malformed.
        """
        normalized = _validate_input(code, user_id, order_amount, ticket_counts)
        coupon = Coupon.objects.filter(code=normalized).first()
        return _evaluate(coupon, normalized, event, user_id, order_amount, ticket_counts, now or timezone.now())

    @staticmethod
    def redeem(
        code: str,
        *,
        event: "Event",
        user_id: str,
        booking_id: str,
        order_amount: Decimal,
        ticket_counts: Mapping[str, int],
        now: datetime | None = None,
    ) -> CouponDiscount:
        """Validate a coupon and record its use against a booking atomically.

        The coupon row is locked, every eligibility rule is re-checked, and
        the usage counter is incremented with a conditional update
        (``current_uses < max_uses``) before the usage entry is appended.
        Redeeming the same coupon again for the same ``booking_id`` returns
        the originally recorded discount without consuming another use.

        Args:
            code: The coupon code as typed by the buyer (any case).
            event: The event being booked.
            user_id: The buyer's user id.
            booking_id: The booking the coupon pays for; the idempotency key.
            order_amount: The undiscounted order amount.
            ticket_counts: Mapping of ticket type slug to quantity.
            now: Evaluation time. Defaults to the current time.

        Returns:
            The coupon discount result, valid or rejected.

        Raises:
            ValidationError: If any required input is missing or malformed.
        """
        normalized = _validate_input(code, user_id, order_amount, ticket_counts)
        if not booking_id:
            raise ValidationError("A booking id is required to redeem a coupon.", code="missing_booking_id")
        now = now or timezone.now()

        with transaction.atomic():
            coupon = Coupon.objects.select_for_update().filter(code=normalized).first()

            if coupon is not None:
                previous = coupon.usages.filter(booking_id=booking_id).first()
                if previous is not None:
                    return _replayed(coupon, previous)

            result = _evaluate(coupon, normalized, event, user_id, order_amount, ticket_counts, now)
            if not result.is_valid:
                return result

            try:
                with transaction.atomic():
                    updated = (
                        Coupon.objects.filter(pk=coupon.pk, is_active=True)
                        .filter(models.Q(max_uses__isnull=True) | models.Q(current_uses__lt=models.F("max_uses")))
                        .update(current_uses=models.F("current_uses") + 1, updated_at=now)
                    )
                    if updated != 1:
                        logger.warning("Coupon %s lost a redemption race for booking %s", coupon.code, booking_id)
                        return _rejected(coupon.code, coupon.discount_type, "usage_limit", _USAGE_LIMIT_MESSAGE)
                    CouponUsage.objects.create(
                        coupon=coupon,
                        user_id=user_id,
                        booking_id=booking_id,
                        discount_amount=result.discount_amount,
                        used_at=now,
                    )
            except IntegrityError:
                previous = CouponUsage.objects.get(coupon=coupon, booking_id=booking_id)
                return _replayed(coupon, previous)

        logger.info(
            "Coupon %s redeemed by %s for booking %s (%s off)",
            coupon.code,
            user_id,
            booking_id,
            result.discount_amount,
        )
        return result


_USAGE_LIMIT_MESSAGE = "This coupon has reached its usage limit"


def _validate_input(
    code: str,
    user_id: str,
    order_amount: Decimal,
    ticket_counts: Mapping[str, int],
) -> str:
    """Reject malformed input and return the normalized coupon code."""
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("A coupon code is required.", code="missing_coupon_code")
    if not user_id:
        raise ValidationError("A user id is required.", code="missing_user_id")
    if not isinstance(order_amount, Decimal) or order_amount < ZERO:
        raise ValidationError("Order amount must be a non-negative decimal.", code="invalid_order_amount")
    if not isinstance(ticket_counts, Mapping) or any(
        not isinstance(qty, int) or qty < 0 for qty in ticket_counts.values()
    ):
        raise ValidationError("Ticket counts must be non-negative integers.", code="invalid_ticket_counts")
    return code.strip().upper()


def _evaluate(
    coupon: Coupon | None,
    code: str,
    event: "Event",
    user_id: str,
    order_amount: Decimal,
    ticket_counts: Mapping[str, int],
    now: datetime,
) -> CouponDiscount:
    """Run the eligibility checks in order, stopping at the first failure."""
    if coupon is None:
        return _rejected(code, "", "not_found", "Invalid coupon code")
    if not coupon.is_active:
        return _rejected(code, coupon.discount_type, "inactive", "This coupon is no longer active")

    if now < coupon.valid_from:
        return _rejected(code, coupon.discount_type, "not_yet_valid", "This coupon is not yet valid")
    if now > coupon.valid_until:
        return _rejected(code, coupon.discount_type, "expired", "This coupon has expired")
    if coupon.is_early_bird and coupon.early_bird_end_date and now > coupon.early_bird_end_date:
        return _rejected(code, coupon.discount_type, "early_bird_ended", "The early bird offer for this coupon has ended")

    if order_amount < coupon.minimum_order_amount:
        symbol = get_config().currency_symbol
        return _rejected(
            code,
            coupon.discount_type,
            "minimum_order",
            f"Minimum order amount of {symbol}{coupon.minimum_order_amount} required",
        )

    if not _event_is_applicable(coupon, event):
        return _rejected(code, coupon.discount_type, "event_not_applicable", "This coupon is not valid for this event")

    if coupon.applicable_ticket_types and not any(
        ticket_counts.get(slug, 0) > 0 for slug in coupon.applicable_ticket_types
    ):
        return _rejected(
            code,
            coupon.discount_type,
            "ticket_type_not_applicable",
            "This coupon does not apply to the selected ticket types",
        )

    if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
        return _rejected(code, coupon.discount_type, "usage_limit", _USAGE_LIMIT_MESSAGE)

    if coupon.max_uses_per_user is not None:
        used_by_user = coupon.usages.filter(user_id=user_id).count()
        if used_by_user >= coupon.max_uses_per_user:
            return _rejected(code, coupon.discount_type, "user_limit", "You have already used this coupon")

    discount = calculate_discount(coupon, order_amount, ticket_counts, event.ticket_prices())
    symbol = get_config().currency_symbol
    percentage = coupon.discount_value if coupon.discount_type == Coupon.DiscountType.PERCENTAGE else None
    return CouponDiscount(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_amount=discount,
        discount_percentage=percentage,
        message=f"Coupon applied successfully! You saved {symbol}{discount}",
    )


def _event_is_applicable(coupon: Coupon, event: "Event") -> bool:
    """Return True when the coupon is unrestricted or matches the event or its category."""
    event_ids = set(coupon.applicable_events.values_list("pk", flat=True))
    categories = set(coupon.applicable_categories or [])
    if not event_ids and not categories:
        return True
    return event.pk in event_ids or (bool(event.category) and event.category in categories)


def calculate_discount(
    coupon: Coupon,
    order_amount: Decimal,
    ticket_counts: Mapping[str, int],
    ticket_prices: Mapping[str, Decimal],
) -> Decimal:
    """Compute the currency discount a coupon grants on an order.

    Percentage and fixed discounts never exceed the order amount. Buy-x-get-y
    grants ``floor(applicable_tickets / buy_quantity) * get_quantity`` free
    tickets, always the cheapest applicable ones, in whole tickets only.
    """
    if coupon.discount_type == Coupon.DiscountType.PERCENTAGE:
        return min(to_money(order_amount * coupon.discount_value / Decimal(100)), order_amount)

    if coupon.discount_type == Coupon.DiscountType.FIXED_AMOUNT:
        return min(to_money(coupon.discount_value), order_amount)

    if coupon.discount_type == Coupon.DiscountType.BUY_X_GET_Y:
        return min(_buy_x_get_y_discount(coupon, ticket_counts, ticket_prices), order_amount)

    return ZERO


def _buy_x_get_y_discount(
    coupon: Coupon,
    ticket_counts: Mapping[str, int],
    ticket_prices: Mapping[str, Decimal],
) -> Decimal:
    """Price the free tickets of a buy-x-get-y coupon."""
    if coupon.buy_quantity < 1 or coupon.get_quantity < 1:
        return ZERO

    applicable = set(coupon.applicable_ticket_types or [])
    priced: list[tuple[Decimal, int]] = [
        (ticket_prices[slug], qty)
        for slug, qty in ticket_counts.items()
        if qty > 0 and slug in ticket_prices and (not applicable or slug in applicable)
    ]

    ticket_total = sum(qty for _, qty in priced)
    free_tickets = min((ticket_total // coupon.buy_quantity) * coupon.get_quantity, ticket_total)

    # Cheapest tickets go free first.
    discount = ZERO
    for price, qty in sorted(priced, key=lambda item: item[0]):
        if free_tickets <= 0:
            break
        taken = min(qty, free_tickets)
        discount += price * taken
        free_tickets -= taken
    return to_money(discount)


def _rejected(code: str, discount_type: str, reason: str, message: str) -> CouponDiscount:
    return CouponDiscount(
        code=code,
        discount_type=discount_type,
        discount_amount=ZERO,
        message=message,
        is_valid=False,
        reason=reason,
    )


def _replayed(coupon: Coupon, usage: CouponUsage) -> CouponDiscount:
    """Return the result already recorded for a booking."""
    percentage = coupon.discount_value if coupon.discount_type == Coupon.DiscountType.PERCENTAGE else None
    return CouponDiscount(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_amount=usage.discount_amount,
        discount_percentage=percentage,
        message=f"Coupon already applied to booking {usage.booking_id}",
    )
