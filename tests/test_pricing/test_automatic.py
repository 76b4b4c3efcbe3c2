"""Tests for the automatic discount evaluators."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from django.test import override_settings

from django_eventbook.events.models import Event
from django_eventbook.pricing.services.automatic import (
    evaluate_automatic,
    evaluate_early_bird,
    evaluate_group,
    evaluate_referral,
)

DEADLINE = datetime(2027, 2, 28, 23, 59, tzinfo=UTC)


def _event(**overrides):
    fields = {
        "name": "PyCon US 2027",
        "slug": "pycon-us-2027",
        "starts_at": datetime(2027, 5, 14, tzinfo=UTC),
        "early_bird_ends_at": DEADLINE,
    }
    fields.update(overrides)
    return Event(**fields)


@pytest.mark.unit
class TestEarlyBird:
    def test_applies_before_deadline(self):
        result = evaluate_early_bird(_event(), Decimal("300.00"), now=datetime(2027, 2, 1, tzinfo=UTC))
        assert result.is_valid
        assert result.discount_amount == Decimal("60.00")
        assert result.discount_percentage == Decimal("20")
        assert result.message == "Early Bird Special: 20% off! Offer expires on 2027-02-28"

    def test_not_available_at_deadline(self):
        result = evaluate_early_bird(_event(), Decimal("300.00"), now=DEADLINE)
        assert not result.is_valid
        assert result.discount_amount == Decimal("0.00")
        assert result.message == "Early bird discount not available"

    def test_not_available_without_deadline(self):
        result = evaluate_early_bird(_event(early_bird_ends_at=None), Decimal("300.00"))
        assert not result.is_valid

    def test_event_percentage_overrides_default(self):
        event = _event(early_bird_percentage=Decimal("12.50"))
        result = evaluate_early_bird(event, Decimal("100.00"), now=datetime(2027, 2, 1, tzinfo=UTC))
        assert result.discount_amount == Decimal("12.50")
        assert "12.5% off" in result.message

    def test_configured_default_percentage(self):
        with override_settings(DJANGO_EVENTBOOK={"pricing": {"early_bird_percentage": 10}}):
            result = evaluate_early_bird(_event(), Decimal("100.00"), now=datetime(2027, 2, 1, tzinfo=UTC))
        assert result.discount_amount == Decimal("10.00")


@pytest.mark.unit
class TestGroup:
    def test_below_minimum(self):
        result = evaluate_group({"standard": 4}, Decimal("400.00"))
        assert not result.is_valid
        assert result.ticket_count == 4
        assert result.message == "Group discount requires minimum 5 tickets"

    def test_five_tickets_get_fifteen_percent(self):
        result = evaluate_group({"standard": 3, "vip": 2}, Decimal("800.00"))
        assert result.is_valid
        assert result.discount_amount == Decimal("120.00")
        assert result.message == "Group Discount: 15% off for 5+ tickets!"

    def test_ten_tickets_get_twenty_percent(self):
        result = evaluate_group({"standard": 10}, Decimal("1000.00"))
        assert result.discount_amount == Decimal("200.00")
        assert result.message == "Group Discount: 20% off for 10+ tickets!"

    def test_configured_tiers(self):
        with override_settings(DJANGO_EVENTBOOK={"pricing": {"group_discount_tiers": [(2, 5)]}}):
            result = evaluate_group({"standard": 2}, Decimal("200.00"))
        assert result.discount_amount == Decimal("10.00")


@pytest.mark.unit
class TestReferral:
    def test_first_booking(self):
        result = evaluate_referral(Decimal("200.00"), is_first_booking=True)
        assert result.is_valid
        assert result.discount_amount == Decimal("30.00")

    def test_repeat_booking(self):
        result = evaluate_referral(Decimal("200.00"), is_first_booking=False)
        assert not result.is_valid
        assert result.reason == "not_first_booking"


@pytest.mark.unit
class TestEvaluateAutomatic:
    def test_returns_both_evaluations(self):
        results = evaluate_automatic(
            _event(),
            {"standard": 5},
            Decimal("500.00"),
            now=datetime(2027, 2, 1, tzinfo=UTC),
        )
        assert [r.kind for r in results] == ["early_bird", "group"]
        assert all(r.is_valid for r in results)

    def test_empty_order_gets_nothing(self):
        assert evaluate_automatic(_event(), {}, Decimal("0.00")) == []

    def test_is_deterministic(self):
        now = datetime(2027, 2, 1, tzinfo=UTC)
        first = evaluate_automatic(_event(), {"standard": 6}, Decimal("600.00"), now=now)
        second = evaluate_automatic(_event(), {"standard": 6}, Decimal("600.00"), now=now)
        assert first == second
