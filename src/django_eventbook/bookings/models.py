"""Booking, modification, and cancellation models for django-eventbook."""

from datetime import datetime

from django.db import models
from django.utils import timezone


class Booking(models.Model):
    """A buyer's reservation of tickets for one event.

    Captures a snapshot of the event title and date, the ticket mix, and the
    pricing breakdown at checkout. The ``reference`` is the booking id used as
    the idempotency key for coupon redemption and point accrual.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a booking."""

        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        CHECKED_IN = "checked_in", "Checked in"
        CANCELLED = "cancelled", "Cancelled"

    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique booking reference, e.g. "BKG-A1B2C3D4".',
    )
    user_id = models.CharField(max_length=100)
    user_email = models.EmailField(blank=True, default="")
    event = models.ForeignKey(
        "eventbook_events.Event",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    event_title = models.CharField(max_length=200)
    event_date = models.DateTimeField()
    tickets = models.JSONField(
        default=dict,
        help_text="Ticket quantities keyed by ticket type slug.",
    )
    attendee_name = models.CharField(max_length=200, blank=True, default="")
    attendee_email = models.EmailField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    coupon_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Snapshot of the coupon code applied at checkout.",
    )
    referred_by = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="User id of the referrer, if the buyer arrived through a referral.",
    )
    referral_discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Booking {self.reference} ({self.get_status_display()})"

    @property
    def ticket_count(self) -> int:
        """Return the total number of tickets across all ticket types."""
        return sum(int(qty) for qty in self.tickets.values())

    def hours_until_event(self, now: datetime | None = None) -> float:
        """Return the hours left before the event starts (negative once it has)."""
        now = now or timezone.now()
        return (self.event_date - now).total_seconds() / 3600


class BookingModification(models.Model):
    """An accepted change to a booking. Rows are immutable history."""

    class ModificationType(models.TextChoices):
        """What part of the booking was changed."""

        ATTENDEE_INFO = "attendee_info", "Attendee info"
        TICKET_QUANTITY = "ticket_quantity", "Ticket quantity"
        TICKET_TYPE = "ticket_type", "Ticket type"

    booking = models.ForeignKey(
        Booking,
        on_delete=models.PROTECT,
        related_name="modifications",
    )
    modification_type = models.CharField(max_length=20, choices=ModificationType.choices)
    old_value = models.JSONField(null=True, blank=True)
    new_value = models.JSONField(null=True, blank=True)
    additional_cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Signed change to the booking total.",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.get_modification_type_display()} on {self.booking.reference}"


class BookingCancellation(models.Model):
    """The single cancellation record of a booking and its refund outcome."""

    booking = models.OneToOneField(
        Booking,
        on_delete=models.PROTECT,
        related_name="cancellation",
    )
    user_id = models.CharField(max_length=100)
    reason = models.TextField(blank=True, default="")
    refund_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    processing_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    points_reversed = models.PositiveIntegerField(default=0)
    points_refunded = models.PositiveIntegerField(default=0)
    cancelled_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-cancelled_at"]

    def __str__(self) -> str:
        return f"Cancellation of {self.booking.reference}"
