"""Django app configuration for the loyalty app."""

from django.apps import AppConfig


class DjangoEventbookLoyaltyConfig(AppConfig):
    """Configuration for the loyalty app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_eventbook.loyalty"
    label = "eventbook_loyalty"
    verbose_name = "Loyalty"

    def ready(self) -> None:
        """Import signal handlers."""
        import django_eventbook.loyalty.receivers  # noqa: F401, PLC0415
