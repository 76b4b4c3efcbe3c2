"""Django admin configuration for the bookings app."""

from typing import TYPE_CHECKING

from django.contrib import admin

from django_eventbook.bookings.models import Booking, BookingCancellation, BookingModification

if TYPE_CHECKING:
    from django.http import HttpRequest


class BookingModificationInline(admin.TabularInline):
    """Read-only modification history within the booking admin."""

    model = BookingModification
    extra = 0
    can_delete = False
    readonly_fields = ("modification_type", "old_value", "new_value", "additional_cost", "created_at")

    def has_add_permission(self, request: "HttpRequest", obj: Booking | None = None) -> bool:  # noqa: ARG002, D102
        return False


class BookingCancellationInline(admin.StackedInline):
    """Read-only cancellation record within the booking admin."""

    model = BookingCancellation
    extra = 0
    can_delete = False
    readonly_fields = (
        "user_id",
        "reason",
        "refund_percentage",
        "processing_fee",
        "refund_amount",
        "points_reversed",
        "points_refunded",
        "cancelled_at",
    )

    def has_add_permission(self, request: "HttpRequest", obj: Booking | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for bookings.

    Money fields and status are read-only; changes should flow through the
    booking and lifecycle services so history and loyalty stay consistent.
    """

    list_display = ("reference", "user_id", "event", "status", "total_amount", "created_at")
    list_filter = ("event", "status")
    search_fields = ("reference", "user_id", "user_email", "attendee_email")
    readonly_fields = (
        "status",
        "subtotal",
        "discount_amount",
        "total_amount",
        "coupon_code",
        "referral_discount",
    )
    inlines = (BookingModificationInline, BookingCancellationInline)
