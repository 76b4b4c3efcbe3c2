"""Loyalty account, ledger entry, and referral reward models for django-eventbook."""

from django.db import models


class LoyaltyTier(models.TextChoices):
    """Loyalty levels, ordered by the lifetime points needed to reach them."""

    BRONZE = "bronze", "Bronze"
    SILVER = "silver", "Silver"
    GOLD = "gold", "Gold"
    PLATINUM = "platinum", "Platinum"


class LoyaltyAccount(models.Model):
    """A user's point balance and tier.

    Accounts are created lazily on first lookup and never deleted. ``balance``
    and ``lifetime_points`` are running totals maintained under a row lock by
    the ledger service; ``balance`` always equals the sum of the account's
    entries and can never go negative.
    """

    user_id = models.CharField(max_length=100, unique=True)
    email = models.EmailField(blank=True, default="")
    balance = models.IntegerField(default=0)
    lifetime_points = models.PositiveIntegerField(default=0)
    tier = models.CharField(
        max_length=20,
        choices=LoyaltyTier.choices,
        default=LoyaltyTier.BRONZE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-balance", "user_id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(balance__gte=0), name="loyalty_account_balance_non_negative"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} ({self.balance} pts, {self.get_tier_display()})"


class LoyaltyEntry(models.Model):
    """One signed movement of points on an account.

    Entries are append-only. Positive entries (accruals, referral and bonus
    grants) are "lots"; redemptions consume open lots earliest-expiring first,
    while expiration and reversal entries zero one specific lot through
    ``reverses``. A lot can be compensated at most once.
    """

    class Reason(models.TextChoices):
        """Why points moved."""

        BOOKING_ACCRUAL = "booking_accrual", "Booking accrual"
        REFERRAL = "referral", "Referral"
        TIER_BONUS = "tier_bonus", "Tier upgrade bonus"
        MANUAL = "manual", "Manual"
        REDEMPTION = "redemption", "Redemption"
        EXPIRATION = "expiration", "Expiration"
        REVERSAL = "reversal", "Reversal"
        REDEMPTION_REFUND = "redemption_refund", "Redemption refund"

    account = models.ForeignKey(
        LoyaltyAccount,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    amount = models.IntegerField()
    reason = models.CharField(max_length=20, choices=Reason.choices)
    description = models.CharField(max_length=300, blank=True, default="")
    booking_id = models.CharField(max_length=100, blank=True, default="")
    event_id = models.CharField(max_length=100, blank=True, default="")
    source_key = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Idempotency key. A non-empty key can be used once per account.",
    )
    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="compensation",
        help_text="The lot this expiration or reversal entry zeroes.",
    )
    awarded_at = models.DateTimeField()
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["awarded_at", "id"]
        verbose_name_plural = "loyalty entries"
        constraints = [
            models.UniqueConstraint(
                fields=["account", "source_key"],
                condition=~models.Q(source_key=""),
                name="loyalty_entry_unique_source_key",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.amount:+d} {self.reason} ({self.account.user_id})"

    @property
    def is_lot(self) -> bool:
        """Return True for entries that add points to the balance."""
        return self.amount > 0


class ReferralReward(models.Model):
    """The single reward granted for a referrer/referee pair."""

    referrer_user_id = models.CharField(max_length=100)
    referee_user_id = models.CharField(max_length=100)
    booking_id = models.CharField(max_length=100, blank=True, default="")
    referrer_reward = models.DecimalField(max_digits=10, decimal_places=2)
    referee_reward = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    points = models.PositiveIntegerField(default=0)
    entry = models.OneToOneField(
        LoyaltyEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="referral_reward",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["referrer_user_id", "referee_user_id"],
                name="loyalty_referral_once_per_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.referrer_user_id} referred {self.referee_user_id}"
