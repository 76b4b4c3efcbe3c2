"""Django admin configuration for the events app."""

from django.contrib import admin

from django_eventbook.events.models import Event, TicketType


class TicketTypeInline(admin.TabularInline):
    """Inline editing of an event's ticket types (its price table)."""

    model = TicketType
    extra = 0
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for managing events.

    Ticket types are edited inline since they only exist within an event.
    """

    list_display = ("name", "slug", "category", "starts_at", "early_bird_ends_at", "is_published")
    list_filter = ("category", "is_published")
    search_fields = ("name", "slug", "organizer_id")
    prepopulated_fields = {"slug": ("name",)}
    inlines = (TicketTypeInline,)


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    """Admin interface for managing ticket types."""

    list_display = ("name", "event", "price", "is_active", "order")
    list_filter = ("event", "is_active")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
