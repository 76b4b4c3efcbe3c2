"""Booking lifecycle service: status transitions, modifications, and cancellations.

Eligibility for modifying or cancelling a booking depends on the hours left
before the event; the cutoffs and the refund table come from
``DJANGO_EVENTBOOK["bookings"]``. Every accepted change appends an immutable
record, and the booking row is locked while the change is applied.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from django_eventbook.bookings.models import Booking, BookingCancellation, BookingModification
from django_eventbook.bookings.signals import booking_cancelled, booking_modified
from django_eventbook.loyalty.services.ledger import LoyaltyService
from django_eventbook.pricing.discounts import ZERO, to_money
from django_eventbook.settings import get_config

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Booking.Status.PENDING.value: frozenset({Booking.Status.CONFIRMED.value, Booking.Status.CANCELLED.value}),
    Booking.Status.CONFIRMED.value: frozenset(
        {Booking.Status.PENDING.value, Booking.Status.CHECKED_IN.value, Booking.Status.CANCELLED.value}
    ),
    Booking.Status.CHECKED_IN.value: frozenset(),
    Booking.Status.CANCELLED.value: frozenset(),
}

_CLOSED_STATUSES = frozenset({Booking.Status.CANCELLED.value, Booking.Status.CHECKED_IN.value})


@dataclass
class RefundQuote:
    """What cancelling a booking right now would refund."""

    hours_until_event: float
    refund_percentage: Decimal
    processing_fee: Decimal
    refund_amount: Decimal

    def as_dict(self) -> dict[str, object]:
        return {
            "hoursUntilEvent": self.hours_until_event,
            "refundPercentage": float(self.refund_percentage),
            "processingFee": float(self.processing_fee),
            "refundAmount": float(self.refund_amount),
        }


@dataclass
class ModificationResult:
    """Outcome of a modification request."""

    success: bool
    message: str
    additional_cost: Decimal = ZERO
    new_total: Decimal | None = None
    points_earned: int = 0
    modification: BookingModification | None = None
    reason: str = ""

    def as_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "additionalCost": float(self.additional_cost),
            "newTotal": float(self.new_total) if self.new_total is not None else None,
            "pointsEarned": self.points_earned,
        }


@dataclass
class CancellationResult:
    """Outcome of a cancellation request."""

    success: bool
    message: str
    refund: RefundQuote | None = None
    points_reversed: int = 0
    points_refunded: int = 0
    cancellation: BookingCancellation | None = None
    reason: str = ""

    @property
    def refund_amount(self) -> Decimal:
        return self.refund.refund_amount if self.refund is not None else ZERO

    def as_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "refundAmount": float(self.refund_amount),
            "pointsReversed": self.points_reversed,
            "pointsRefunded": self.points_refunded,
        }


def hours_until_event(event_date: datetime, now: datetime | None = None) -> float:
    """Return the hours between ``now`` and ``event_date`` (negative once past)."""
    now = now or timezone.now()
    return (event_date - now).total_seconds() / 3600


def can_modify(booking: Booking, now: datetime | None = None) -> bool:
    """Return True if the booking is open and the event is beyond the modification cutoff."""
    if str(booking.status) in _CLOSED_STATUSES:
        return False
    cutoff = get_config().bookings.modification_cutoff_hours
    return hours_until_event(booking.event_date, now) > cutoff


def can_cancel(booking: Booking, now: datetime | None = None) -> bool:
    """Return True if the booking is open and the event is beyond the cancellation cutoff."""
    if str(booking.status) in _CLOSED_STATUSES:
        return False
    cutoff = get_config().bookings.cancellation_cutoff_hours
    return hours_until_event(booking.event_date, now) > cutoff


def transition_status(booking: Booking, new_status: str) -> None:
    """Move ``booking`` to ``new_status`` in memory.

    Cancelled and checked-in bookings are terminal; a cancelled booking is
    never resurrected.

    Raises:
        ValidationError: If the state table does not allow the transition.
    """
    allowed = ALLOWED_TRANSITIONS.get(str(booking.status), frozenset())
    if str(new_status) not in allowed:
        raise ValidationError(
            f"Cannot move booking {booking.reference} from '{booking.status}' to '{new_status}'.",
            code="invalid_transition",
        )
    booking.status = new_status


class LifecycleService:
    """Stateless service for booking modifications and cancellations.

    Closed windows and unsupported changes come back as unsuccessful results.
    Malformed requests raise ``ValidationError``; a caller who does not own
    the booking gets ``PermissionDenied``.
    """

    @staticmethod
    def modify_booking(
        booking: Booking,
        modification_type: str,
        new_value: object,
        *,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> ModificationResult:
        """Apply a modification to a booking and price its cost delta.

        - ``attendee_info``: ``new_value`` is a mapping with ``name`` and
          ``email``; no cost change.
        - ``ticket_quantity``: ``new_value`` is the new ticket count; the
          delta is ``(new - old) * (total / old)``.
        - ``ticket_type``: ``new_value`` is the new ticket type slug; the
          delta is ``(new price - old price) * quantity``.

        Quantity and type changes are only priced for bookings holding a
        single ticket type. The booking total never goes below zero. A
        positive delta on a confirmed booking earns loyalty points for the
        extra spend.

        Args:
            booking: The booking to modify.
            modification_type: One of ``BookingModification.ModificationType``.
            new_value: The requested new value, shaped by the type.
            user_id: The acting user. When given it must own the booking.
            now: Request time. Defaults to the current time.

        Returns:
            A :class:`ModificationResult`.

        Raises:
            ValidationError: If the type or value is malformed.
            PermissionDenied: If ``user_id`` does not own the booking.
        """
        if modification_type not in BookingModification.ModificationType.values:
            raise ValidationError(
                f"Unknown modification type '{modification_type}'.",
                code="invalid_modification_type",
            )
        _check_owner(booking, user_id)
        now = now or timezone.now()

        with transaction.atomic():
            booking = Booking.objects.select_for_update().get(pk=booking.pk)
            if not can_modify(booking, now):
                return ModificationResult(
                    success=False,
                    message="Booking cannot be modified at this time",
                    reason="modification_window_closed",
                )

            if modification_type == BookingModification.ModificationType.ATTENDEE_INFO:
                old_value, stored_new_value, delta = _change_attendee(booking, new_value)
            else:
                slugs = [slug for slug, qty in booking.tickets.items() if int(qty) > 0]
                if len(slugs) != 1:
                    return ModificationResult(
                        success=False,
                        message="Ticket changes are only supported for bookings with a single ticket type",
                        reason="mixed_ticket_types",
                    )
                if modification_type == BookingModification.ModificationType.TICKET_QUANTITY:
                    change = _change_quantity(booking, slugs[0], new_value)
                else:
                    change = _change_ticket_type(booking, slugs[0], new_value)
                if change is None:
                    return ModificationResult(
                        success=False,
                        message="The booking already has this value",
                        reason="no_change",
                    )
                old_value, stored_new_value, delta = change

            delta = max(delta, -booking.total_amount)
            booking.total_amount = to_money(booking.total_amount + delta)
            booking.save()
            modification = BookingModification.objects.create(
                booking=booking,
                modification_type=modification_type,
                old_value=old_value,
                new_value=stored_new_value,
                additional_cost=delta,
                created_at=now,
            )

            points_earned = 0
            if delta > ZERO and booking.status == Booking.Status.CONFIRMED:
                accrual = LoyaltyService.award_booking_points(
                    booking.user_id,
                    booking.reference,
                    str(booking.event_id),
                    delta,
                    booking.event_title,
                    idempotency_key=f"{booking.reference}:mod:{modification.pk}",
                    now=now,
                )
                points_earned = accrual.points_earned

        logger.info(
            "Booking %s modified (%s), additional cost %s",
            booking.reference,
            modification_type,
            delta,
        )
        booking_modified.send(sender=Booking, booking=booking, modification=modification)

        symbol = get_config().currency_symbol
        if delta > ZERO:
            message = f"Booking updated. Additional charge: {symbol}{delta}"
        elif delta < ZERO:
            message = f"Booking updated. Credit due: {symbol}{-delta}"
        else:
            message = "Booking updated successfully"
        return ModificationResult(
            success=True,
            message=message,
            additional_cost=delta,
            new_total=booking.total_amount,
            points_earned=points_earned,
            modification=modification,
        )

    @staticmethod
    def refund_preview(booking: Booking, now: datetime | None = None) -> RefundQuote:
        """Price a cancellation of ``booking`` at ``now`` without changing anything.

        The first refund tier whose ``min_hours`` the remaining time strictly
        exceeds applies; below every tier the refund is zero. A tier's
        processing fee is ``fee_rate`` of the booking total, capped at
        ``fee_cap`` and deducted from the refunded share.
        """
        hours = hours_until_event(booking.event_date, now)
        for tier in get_config().bookings.refund_tiers:
            if hours > tier.min_hours:
                gross = to_money(booking.total_amount * tier.refund_percentage / Decimal(100))
                fee = to_money(booking.total_amount * tier.fee_rate)
                if tier.fee_cap is not None:
                    fee = min(fee, to_money(tier.fee_cap))
                return RefundQuote(
                    hours_until_event=hours,
                    refund_percentage=tier.refund_percentage,
                    processing_fee=fee,
                    refund_amount=max(gross - fee, ZERO),
                )
        return RefundQuote(hours_until_event=hours, refund_percentage=ZERO, processing_fee=ZERO, refund_amount=ZERO)

    @staticmethod
    def cancel_booking(
        booking: Booking,
        *,
        reason: str = "",
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> CancellationResult:
        """Cancel a booking and record its refund.

        The cancellation record and the status change are written together.
        Accrued loyalty points are kept unless
        ``DJANGO_EVENTBOOK["loyalty"]["reverse_points_on_cancel"]`` is set, in
        which case the unspent remainder of the booking's accruals is
        reversed. Points spent on the booking come back in proportion to the
        refund percentage unless
        ``DJANGO_EVENTBOOK["loyalty"]["refund_redeemed_points"]`` is off.

        Raises:
            PermissionDenied: If ``user_id`` does not own the booking.
        """
        _check_owner(booking, user_id)
        now = now or timezone.now()

        with transaction.atomic():
            booking = Booking.objects.select_for_update().get(pk=booking.pk)
            if not can_cancel(booking, now):
                return CancellationResult(
                    success=False,
                    message="Booking cannot be cancelled at this time",
                    reason="cancellation_window_closed",
                )

            refund = LifecycleService.refund_preview(booking, now)
            points_reversed = 0
            if get_config().loyalty.reverse_points_on_cancel:
                points_reversed = LoyaltyService.reverse_booking_points(booking.user_id, booking.reference, now=now)
            points_refunded = 0
            if get_config().loyalty.refund_redeemed_points and refund.refund_percentage > ZERO:
                points_refunded = LoyaltyService.refund_redeemed_points(
                    booking.user_id, booking.reference, refund.refund_percentage, now=now
                )

            cancellation = BookingCancellation.objects.create(
                booking=booking,
                user_id=user_id or booking.user_id,
                reason=reason,
                refund_percentage=refund.refund_percentage,
                processing_fee=refund.processing_fee,
                refund_amount=refund.refund_amount,
                points_reversed=points_reversed,
                points_refunded=points_refunded,
                cancelled_at=now,
            )
            transition_status(booking, Booking.Status.CANCELLED)
            booking.save(update_fields=["status", "updated_at"])

        logger.info(
            "Booking %s cancelled (%.1fh before event), refund %s",
            booking.reference,
            refund.hours_until_event,
            refund.refund_amount,
        )
        booking_cancelled.send(sender=Booking, booking=booking, cancellation=cancellation)

        symbol = get_config().currency_symbol
        return CancellationResult(
            success=True,
            message=f"Booking cancelled. Refund of {symbol}{refund.refund_amount} will be processed.",
            refund=refund,
            points_reversed=points_reversed,
            points_refunded=points_refunded,
            cancellation=cancellation,
        )


def _check_owner(booking: Booking, user_id: str | None) -> None:
    if user_id is not None and user_id != booking.user_id:
        raise PermissionDenied(f"User {user_id} does not own booking {booking.reference}.")


def _change_attendee(booking: Booking, new_value: object) -> tuple[dict, dict, Decimal]:
    if not isinstance(new_value, Mapping) or not new_value.get("name") or not new_value.get("email"):
        raise ValidationError(
            "Attendee info needs a name and an email.",
            code="invalid_modification_value",
        )
    old_value = {"name": booking.attendee_name, "email": booking.attendee_email}
    booking.attendee_name = str(new_value["name"])
    booking.attendee_email = str(new_value["email"])
    return old_value, {"name": booking.attendee_name, "email": booking.attendee_email}, ZERO


def _change_quantity(booking: Booking, slug: str, new_value: object) -> tuple[int, int, Decimal] | None:
    if isinstance(new_value, bool) or not isinstance(new_value, int) or new_value < 1:
        raise ValidationError("Ticket quantity must be a positive whole number.", code="invalid_modification_value")
    old_qty = int(booking.tickets[slug])
    if new_value == old_qty:
        return None
    per_ticket = booking.total_amount / old_qty
    delta = to_money((new_value - old_qty) * per_ticket)
    booking.tickets = {slug: new_value}
    return old_qty, new_value, delta


def _change_ticket_type(booking: Booking, slug: str, new_value: object) -> tuple[str, str, Decimal] | None:
    if not isinstance(new_value, str) or not new_value:
        raise ValidationError("Ticket type must be a ticket type slug.", code="invalid_modification_value")
    if new_value == slug:
        return None
    active_prices = booking.event.ticket_prices()
    if new_value not in active_prices:
        raise ValidationError(f"Ticket type '{new_value}' is not sold for this event.", code="unknown_ticket_type")
    old_price = booking.event.ticket_types.get(slug=slug).price
    qty = int(booking.tickets[slug])
    delta = to_money((active_prices[new_value] - old_price) * qty)
    booking.tickets = {new_value: qty}
    return slug, new_value, delta
