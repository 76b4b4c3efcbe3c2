"""Django app configuration for the pricing app."""

from django.apps import AppConfig


class DjangoEventbookPricingConfig(AppConfig):
    """Configuration for the pricing app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_eventbook.pricing"
    label = "eventbook_pricing"
    verbose_name = "Pricing"
