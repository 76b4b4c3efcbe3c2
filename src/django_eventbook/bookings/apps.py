"""Django app configuration for the bookings app."""

from django.apps import AppConfig


class DjangoEventbookBookingsConfig(AppConfig):
    """Configuration for the bookings app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_eventbook.bookings"
    label = "eventbook_bookings"
    verbose_name = "Bookings"
