"""Event and ticket type models for django-eventbook."""

from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from django_eventbook.settings import get_config


class Event(models.Model):
    """A bookable event with its schedule, category, and early-bird window.

    Events are the read side of the pricing engine: the discount evaluators
    consult the category, the registration window, and the early-bird
    settings, and every order is priced from the event's ticket types.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    category = models.CharField(max_length=100, blank=True, default="")
    description = models.TextField(blank=True, default="")
    organizer_id = models.CharField(max_length=100, blank=True, default="")
    starts_at = models.DateTimeField()
    registration_start = models.DateTimeField(null=True, blank=True)
    registration_end = models.DateTimeField(null=True, blank=True)
    early_bird_ends_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Explicit end of the early-bird window. Falls back to the configured window after registration opens.",
    )
    early_bird_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Early-bird discount percentage. Empty means the configured default.",
    )
    is_published = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["starts_at"]

    def __str__(self) -> str:
        return self.name

    @property
    def early_bird_deadline(self) -> datetime | None:
        """Return the moment the early-bird discount stops applying.

        An explicit ``early_bird_ends_at`` wins. Otherwise, when an
        ``early_bird_window_days`` is configured and registration has a start
        date, the deadline is that many days after registration opens.
        """
        if self.early_bird_ends_at is not None:
            return self.early_bird_ends_at
        window_days = get_config().pricing.early_bird_window_days
        if window_days and self.registration_start is not None:
            return self.registration_start + timedelta(days=window_days)
        return None

    def ticket_prices(self) -> dict[str, Decimal]:
        """Return the active ticket price table keyed by ticket type slug."""
        return {tt.slug: tt.price for tt in self.ticket_types.filter(is_active=True)}

    def order_subtotal(self, ticket_counts: Mapping[str, int]) -> Decimal:
        """Price an order's ticket mix against this event's price table.

        Args:
            ticket_counts: Mapping of ticket type slug to quantity.

        Returns:
            The undiscounted order amount.

        Raises:
            ValidationError: If a quantity is negative or a ticket type is
                not sold for this event.
        """
        prices = self.ticket_prices()
        subtotal = Decimal("0.00")
        for slug, qty in ticket_counts.items():
            if not isinstance(qty, int) or qty < 0:
                raise ValidationError(f"Invalid quantity for ticket type '{slug}'.", code="invalid_ticket_counts")
            if qty == 0:
                continue
            if slug not in prices:
                raise ValidationError(f"Ticket type '{slug}' is not sold for this event.", code="unknown_ticket_type")
            subtotal += prices[slug] * qty
        return subtotal


class TicketType(models.Model):
    """A purchasable ticket category for an event (e.g. standard, VIP).

    The set of ticket types is the event's price table: subtotals, the
    buy-x-get-y coupon, and ticket-type modifications all read ``price``
    from here.
    """

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="ticket_types",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "name"]
        unique_together = [("event", "slug")]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"
