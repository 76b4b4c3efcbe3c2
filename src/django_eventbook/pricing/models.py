"""Coupon and coupon usage models for django-eventbook."""

from django.db import models


class Coupon(models.Model):
    """An organizer-authored, code-redeemable discount rule.

    Coupons are never deleted; organizers deactivate them with ``is_active``.
    The only mutations after creation are the ``current_uses`` counter and
    the append-only ``usages`` history, both written together by
    :meth:`~django_eventbook.pricing.services.coupons.CouponService.redeem`.
    """

    class DiscountType(models.TextChoices):
        """The kind of discount a coupon grants."""

        PERCENTAGE = "percentage", "Percentage discount"
        FIXED_AMOUNT = "fixed_amount", "Fixed amount discount"
        BUY_X_GET_Y = "buy_x_get_y", "Buy X get Y free"

    code = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
    )
    discount_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Percentage (0-100) or fixed amount depending on discount_type.",
    )
    buy_quantity = models.PositiveIntegerField(default=1)
    get_quantity = models.PositiveIntegerField(default=0)
    max_uses = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Total redemptions allowed. Empty means unlimited.",
    )
    max_uses_per_user = models.PositiveIntegerField(
        null=True,
        blank=True,
        default=1,
        help_text="Redemptions allowed per user. Empty means unlimited.",
    )
    current_uses = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()
    applicable_events = models.ManyToManyField(
        "eventbook_events.Event",
        blank=True,
        related_name="coupons",
        help_text="Events this coupon applies to. Empty (with no categories) means all.",
    )
    applicable_categories = models.JSONField(
        default=list,
        blank=True,
        help_text="Event categories this coupon applies to, as an alternative to specific events.",
    )
    applicable_ticket_types = models.JSONField(
        default=list,
        blank=True,
        help_text="Ticket type slugs this coupon applies to. Empty means all.",
    )
    minimum_order_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_early_bird = models.BooleanField(default=False)
    early_bird_end_date = models.DateTimeField(null=True, blank=True)
    is_referral = models.BooleanField(default=False)
    referrer_reward = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    referee_reward = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_uses__isnull=True) | models.Q(current_uses__lte=models.F("max_uses")),
                name="pricing_coupon_uses_within_cap",
            ),
        ]

    def __str__(self) -> str:
        return self.code

    def save(self, *args: object, **kwargs: object) -> None:
        """Normalise the code to upper case so lookups are case-insensitive."""
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    @property
    def remaining_uses(self) -> int | None:
        """Return how many redemptions are left, or ``None`` when unlimited."""
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.current_uses, 0)


class CouponUsage(models.Model):
    """One successful coupon redemption, keyed by the booking it paid for.

    Rows are append-only. The ``(coupon, booking_id)`` uniqueness makes a
    retried redemption for the same booking a replay rather than a second use.
    """

    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.PROTECT,
        related_name="usages",
    )
    user_id = models.CharField(max_length=100)
    booking_id = models.CharField(max_length=100)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)
    used_at = models.DateTimeField()

    class Meta:
        ordering = ["used_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["coupon", "booking_id"], name="pricing_couponusage_once_per_booking"),
        ]

    def __str__(self) -> str:
        return f"{self.coupon.code} on {self.booking_id}"
