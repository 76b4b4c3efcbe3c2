"""Management command to bootstrap events, ticket types, and coupons from a TOML file."""

from typing import Any

from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.db import transaction

from django_eventbook.config_loader import load_events_config
from django_eventbook.events.models import Event, TicketType
from django_eventbook.pricing.models import Coupon

# Mapping from TOML field names to Django model field names.
_EVENT_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "category": "category",
    "description": "description",
    "organizer": "organizer_id",
    "starts_at": "starts_at",
    "registration_start": "registration_start",
    "registration_end": "registration_end",
    "early_bird_ends_at": "early_bird_ends_at",
    "early_bird_percentage": "early_bird_percentage",
    "published": "is_published",
}

_TICKET_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "price": "price",
    "active": "is_active",
}

_COUPON_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "description": "description",
    "discount_type": "discount_type",
    "discount_value": "discount_value",
    "buy_quantity": "buy_quantity",
    "get_quantity": "get_quantity",
    "max_uses": "max_uses",
    "max_uses_per_user": "max_uses_per_user",
    "valid_from": "valid_from",
    "valid_until": "valid_until",
    "categories": "applicable_categories",
    "ticket_types": "applicable_ticket_types",
    "minimum_order_amount": "minimum_order_amount",
    "early_bird": "is_early_bird",
    "early_bird_end_date": "early_bird_end_date",
    "referral": "is_referral",
    "referrer_reward": "referrer_reward",
    "referee_reward": "referee_reward",
    "active": "is_active",
}


def _map_fields(data: dict[str, Any], field_map: dict[str, str]) -> dict[str, Any]:
    """Map TOML config keys to Django model field names."""
    return {model_field: data[config_key] for config_key, model_field in field_map.items() if config_key in data}


class Command(BaseCommand):
    """Bootstrap events and coupons from a TOML configuration file.

    Usage::

        manage.py bootstrap_events --config events.toml
        manage.py bootstrap_events --config events.toml --update
        manage.py bootstrap_events --config events.toml --dry-run
    """

    help = "Create or update events, ticket types, and coupons from a TOML config file."

    def add_arguments(self, parser: CommandParser) -> None:  # noqa: D102
        parser.add_argument(
            "--config",
            required=True,
            help="Path to the events TOML configuration file.",
        )
        parser.add_argument(
            "--update",
            action="store_true",
            default=False,
            help="Update existing events and coupons instead of failing on duplicates.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Validate the config and print what would be created without saving.",
        )

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: ARG002, D102
        try:
            conf = load_events_config(options["config"])
        except (FileNotFoundError, TypeError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        update: bool = options["update"]
        if options["dry_run"]:
            self._print_dry_run(conf)
            return

        with transaction.atomic():
            events = [self._bootstrap_event(event_data, update=update) for event_data in conf["events"]]
            coupons = [self._bootstrap_coupon(coupon_data, update=update) for coupon_data in conf["coupons"]]

        self.stdout.write(self.style.SUCCESS(f"Bootstrapped {len(events)} event(s) and {len(coupons)} coupon(s)."))

    def _bootstrap_event(self, event_data: dict[str, Any], *, update: bool) -> Event:
        slug = event_data["slug"]
        fields = _map_fields(event_data, _EVENT_FIELD_MAP)

        existing = Event.objects.filter(slug=slug).first()
        if existing and not update:
            raise CommandError(f"Event with slug '{slug}' already exists. Use --update to update it.")

        if existing:
            for attr, value in fields.items():
                setattr(existing, attr, value)
            existing.save()
            event = existing
            self.stdout.write(self.style.SUCCESS(f"  Updated event: {event.name}"))
        else:
            event = Event.objects.create(slug=slug, **fields)
            self.stdout.write(self.style.SUCCESS(f"  Created event: {event.name}"))

        for position, ticket_data in enumerate(event_data["tickets"]):
            ticket_fields = _map_fields(ticket_data, _TICKET_FIELD_MAP)
            ticket_fields["order"] = position
            ticket, created = TicketType.objects.update_or_create(
                event=event,
                slug=ticket_data["slug"],
                defaults=ticket_fields,
            )
            verb = "Created" if created else "Updated"
            self.stdout.write(f"    {verb} ticket type: {ticket.name} ({ticket.price})")
        return event

    def _bootstrap_coupon(self, coupon_data: dict[str, Any], *, update: bool) -> Coupon:
        code = coupon_data["code"]
        fields = _map_fields(coupon_data, _COUPON_FIELD_MAP)

        event_slugs = coupon_data.get("events", [])
        events = list(Event.objects.filter(slug__in=event_slugs))
        unknown = set(event_slugs) - {event.slug for event in events}
        if unknown:
            raise CommandError(f"Coupon '{code}' references unknown events: {', '.join(sorted(unknown))}")

        existing = Coupon.objects.filter(code=code).first()
        if existing and not update:
            raise CommandError(f"Coupon '{code}' already exists. Use --update to update it.")

        if existing:
            for attr, value in fields.items():
                setattr(existing, attr, value)
            existing.save()
            coupon = existing
            self.stdout.write(self.style.SUCCESS(f"  Updated coupon: {code}"))
        else:
            coupon = Coupon.objects.create(code=code, **fields)
            self.stdout.write(self.style.SUCCESS(f"  Created coupon: {code}"))
        coupon.applicable_events.set(events)
        return coupon

    def _print_dry_run(self, conf: dict[str, Any]) -> None:
        self.stdout.write(self.style.NOTICE("Dry run -- nothing will be saved."))
        for event_data in conf["events"]:
            self.stdout.write(f"  Event: {event_data['name']} ({event_data['slug']}) on {event_data['starts_at']}")
            for ticket_data in event_data["tickets"]:
                self.stdout.write(f"    Ticket type: {ticket_data['name']} ({ticket_data['price']})")
        for coupon_data in conf["coupons"]:
            self.stdout.write(
                f"  Coupon: {coupon_data['code']} ({coupon_data['discount_type']} {coupon_data['discount_value']})"
            )
