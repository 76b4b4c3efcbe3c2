"""Django admin configuration for the loyalty app."""

from typing import TYPE_CHECKING

from django.contrib import admin

from django_eventbook.loyalty.models import LoyaltyAccount, LoyaltyEntry, ReferralReward

if TYPE_CHECKING:
    from django.http import HttpRequest


class LoyaltyEntryInline(admin.TabularInline):
    """Read-only ledger history within the account admin."""

    model = LoyaltyEntry
    fk_name = "account"
    extra = 0
    can_delete = False
    readonly_fields = ("amount", "reason", "description", "booking_id", "awarded_at", "expires_at", "reverses")

    def has_add_permission(self, request: "HttpRequest", obj: LoyaltyAccount | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    """Admin interface for loyalty accounts.

    Balances and tiers are maintained by the ledger service, so they are
    read-only here. Goodwill credits go through ``grant_manual_points``.
    """

    list_display = ("user_id", "email", "balance", "lifetime_points", "tier", "updated_at")
    list_filter = ("tier",)
    search_fields = ("user_id", "email")
    readonly_fields = ("balance", "lifetime_points", "tier", "created_at", "updated_at")
    inlines = (LoyaltyEntryInline,)


@admin.register(LoyaltyEntry)
class LoyaltyEntryAdmin(admin.ModelAdmin):
    """Read-only admin for ledger entries."""

    list_display = ("account", "amount", "reason", "booking_id", "awarded_at", "expires_at")
    list_filter = ("reason",)
    search_fields = ("account__user_id", "booking_id", "source_key")
    readonly_fields = (
        "account",
        "amount",
        "reason",
        "description",
        "booking_id",
        "event_id",
        "source_key",
        "reverses",
        "awarded_at",
        "expires_at",
    )

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: "HttpRequest", obj: LoyaltyEntry | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: "HttpRequest", obj: LoyaltyEntry | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(ReferralReward)
class ReferralRewardAdmin(admin.ModelAdmin):
    """Read-only admin for granted referral rewards."""

    list_display = ("referrer_user_id", "referee_user_id", "referrer_reward", "points", "created_at")
    search_fields = ("referrer_user_id", "referee_user_id", "booking_id")
    readonly_fields = (
        "referrer_user_id",
        "referee_user_id",
        "booking_id",
        "referrer_reward",
        "referee_reward",
        "points",
        "entry",
        "created_at",
    )

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: "HttpRequest", obj: ReferralReward | None = None) -> bool:  # noqa: ARG002, D102
        return False
