from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from django_eventbook.events.models import Event, TicketType
from django_eventbook.pricing.models import Coupon

CONFIG = """
[[events]]
name = "PyCon US 2027"
category = "conference"
starts_at = 2027-05-14T09:00:00Z

[[events.tickets]]
name = "Standard"
price = 100.00

[[events.tickets]]
name = "VIP"
price = 250.00

[[coupons]]
code = "pycon10"
discount_type = "fixed_amount"
discount_value = 10
valid_from = 2027-01-01
valid_until = 2027-05-14
max_uses = 50
events = ["pycon-us-2027"]
"""


def _write_config(path, contents):
    path.write_text(contents)
    return str(path)


def test_bootstrap_wraps_loader_errors_as_command_error(tmp_path):
    config_path = _write_config(tmp_path / "bad.toml", '[[events]]\nname = "No Date"\n')
    with pytest.raises(CommandError, match="missing required fields: starts_at"):
        call_command("bootstrap_events", config=config_path)


@pytest.mark.django_db
def test_bootstrap_creates_events_tickets_and_coupons(tmp_path):
    out = StringIO()
    call_command("bootstrap_events", config=_write_config(tmp_path / "events.toml", CONFIG), stdout=out)

    event = Event.objects.get(slug="pycon-us-2027")
    assert event.category == "conference"
    tickets = list(TicketType.objects.filter(event=event).order_by("order"))
    assert [(t.slug, t.price, t.order) for t in tickets] == [
        ("standard", Decimal("100.00"), 0),
        ("vip", Decimal("250.00"), 1),
    ]

    coupon = Coupon.objects.get(code="PYCON10")
    assert coupon.discount_type == Coupon.DiscountType.FIXED_AMOUNT
    assert coupon.max_uses == 50
    assert list(coupon.applicable_events.all()) == [event]
    assert "Bootstrapped 1 event(s) and 1 coupon(s)." in out.getvalue()


@pytest.mark.django_db
def test_bootstrap_refuses_duplicates_without_update(tmp_path):
    config_path = _write_config(tmp_path / "events.toml", CONFIG)
    call_command("bootstrap_events", config=config_path, stdout=StringIO())

    with pytest.raises(CommandError, match="already exists"):
        call_command("bootstrap_events", config=config_path, stdout=StringIO())


@pytest.mark.django_db
def test_bootstrap_update_changes_prices(tmp_path):
    call_command("bootstrap_events", config=_write_config(tmp_path / "a.toml", CONFIG), stdout=StringIO())

    updated = CONFIG.replace("price = 100.00", "price = 120.00")
    call_command("bootstrap_events", config=_write_config(tmp_path / "b.toml", updated), update=True, stdout=StringIO())

    assert TicketType.objects.get(slug="standard").price == Decimal("120.00")
    assert TicketType.objects.count() == 2
    assert Coupon.objects.count() == 1


@pytest.mark.django_db
def test_bootstrap_rejects_coupon_for_unknown_event(tmp_path):
    contents = CONFIG.replace('events = ["pycon-us-2027"]', 'events = ["nope"]')
    with pytest.raises(CommandError, match="unknown events: nope"):
        call_command("bootstrap_events", config=_write_config(tmp_path / "events.toml", contents), stdout=StringIO())
    assert not Event.objects.exists()


@pytest.mark.django_db
def test_dry_run_saves_nothing(tmp_path):
    out = StringIO()
    call_command(
        "bootstrap_events",
        config=_write_config(tmp_path / "events.toml", CONFIG),
        dry_run=True,
        stdout=out,
    )
    assert "Dry run" in out.getvalue()
    assert "Coupon: PYCON10" in out.getvalue()
    assert not Event.objects.exists()
