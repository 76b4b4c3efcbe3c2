"""Django app configuration for the events app."""

from django.apps import AppConfig


class DjangoEventbookEventsConfig(AppConfig):
    """Configuration for the events app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_eventbook.events"
    label = "eventbook_events"
    verbose_name = "Events"
