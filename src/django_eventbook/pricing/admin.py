"""Django admin configuration for the pricing app."""

from typing import TYPE_CHECKING

from django.contrib import admin

from django_eventbook.pricing.models import Coupon, CouponUsage

if TYPE_CHECKING:
    from django.http import HttpRequest


class CouponUsageInline(admin.TabularInline):
    """Read-only redemption history within the coupon admin."""

    model = CouponUsage
    extra = 0
    readonly_fields = ("user_id", "booking_id", "discount_amount", "used_at")
    can_delete = False

    def has_add_permission(self, request: "HttpRequest", obj: Coupon | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    """Admin interface for managing coupons.

    Displays usage counts alongside the coupon configuration. The usage
    counter is read-only; it only moves through redemptions.
    """

    list_display = (
        "code",
        "discount_type",
        "discount_value",
        "current_uses",
        "max_uses",
        "valid_until",
        "is_active",
    )
    list_filter = ("discount_type", "is_active", "is_early_bird", "is_referral")
    search_fields = ("code", "name")
    filter_horizontal = ("applicable_events",)
    readonly_fields = ("current_uses",)
    inlines = (CouponUsageInline,)


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    """Read-only admin for coupon redemptions."""

    list_display = ("coupon", "user_id", "booking_id", "discount_amount", "used_at")
    search_fields = ("coupon__code", "user_id", "booking_id")
    readonly_fields = ("coupon", "user_id", "booking_id", "discount_amount", "used_at")

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: "HttpRequest", obj: CouponUsage | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: "HttpRequest", obj: CouponUsage | None = None) -> bool:  # noqa: ARG002, D102
        return False
