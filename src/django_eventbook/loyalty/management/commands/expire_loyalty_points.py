"""Management command to sweep expired loyalty points from every account."""

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from django_eventbook.loyalty.models import LoyaltyAccount
from django_eventbook.loyalty.services.ledger import LoyaltyService


class Command(BaseCommand):
    """Expire lapsed loyalty point lots.

    Safe to run repeatedly (e.g. from a daily cron job): lots that were
    already expired are skipped.

    Usage::

        manage.py expire_loyalty_points
        manage.py expire_loyalty_points --user USER-001
    """

    help = "Append expiration entries for loyalty points past their expiry date."

    def add_arguments(self, parser: CommandParser) -> None:  # noqa: D102
        parser.add_argument(
            "--user",
            dest="user_ids",
            action="append",
            default=[],
            help="Only sweep this user id. May be given more than once.",
        )

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: ARG002, D102
        accounts = LoyaltyAccount.objects.order_by("user_id")
        if options["user_ids"]:
            accounts = accounts.filter(user_id__in=options["user_ids"])

        total = 0
        swept = 0
        for user_id in accounts.values_list("user_id", flat=True).iterator():
            expired = LoyaltyService.clean_expired_points(user_id)
            if expired:
                swept += 1
                total += expired
                if options["verbosity"] >= 2:
                    self.stdout.write(f"  {user_id}: {expired} points expired")

        self.stdout.write(self.style.SUCCESS(f"Expired {total} points across {swept} account(s)."))
