from decimal import Decimal

import pytest
from django.test import override_settings

from django_eventbook.settings import RefundTier, get_config


def test_defaults_without_setting() -> None:
    config = get_config()
    assert config.currency == "USD"
    assert config.currency_symbol == "$"
    assert config.pricing.group_discount_tiers == ((5, Decimal("15")), (10, Decimal("20")))
    assert config.pricing.early_bird_percentage == Decimal("20")
    assert config.pricing.max_points_discount_fraction == Decimal("0.5")
    assert config.loyalty.point_value == Decimal("0.01")
    assert config.loyalty.expiry_days == 365
    assert config.loyalty.referral_reward_cap == Decimal("50.00")
    assert config.loyalty.reverse_points_on_cancel is False
    assert config.loyalty.refund_redeemed_points is True
    assert config.bookings.modification_cutoff_hours == 24
    assert [tier.min_hours for tier in config.bookings.refund_tiers] == [48, 24]


def test_get_config_rejects_non_mapping_root() -> None:
    with override_settings(DJANGO_EVENTBOOK=["bad"]):
        with pytest.raises(TypeError, match="must be a mapping"):
            get_config()


def test_get_config_rejects_non_mapping_nested_sections() -> None:
    with override_settings(DJANGO_EVENTBOOK={"pricing": ["bad"]}):
        with pytest.raises(TypeError, match=r"DJANGO_EVENTBOOK\['pricing'\] must be a mapping"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"loyalty": ["bad"]}):
        with pytest.raises(TypeError, match=r"DJANGO_EVENTBOOK\['loyalty'\] must be a mapping"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"bookings": ["bad"]}):
        with pytest.raises(TypeError, match=r"DJANGO_EVENTBOOK\['bookings'\] must be a mapping"):
            get_config()


def test_get_config_validates_primitive_values() -> None:
    with override_settings(DJANGO_EVENTBOOK={"currency": ""}):
        with pytest.raises(ValueError, match="currency"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"currency_symbol": ""}):
        with pytest.raises(ValueError, match="currency_symbol"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"pricing": {"max_points_discount_fraction": 1.5}}):
        with pytest.raises(ValueError, match="max_points_discount_fraction"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"pricing": {"group_discount_tiers": [(0, 10)]}}):
        with pytest.raises(ValueError, match="group_discount_tiers"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"point_value": 0}}):
        with pytest.raises(ValueError, match="point_value"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"expiry_days": 0}}):
        with pytest.raises(ValueError, match="expiry_days"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"bookings": {"modification_cutoff_hours": -1}}):
        with pytest.raises(ValueError, match="cutoff hours"):
            get_config()

    bad_tier = {"min_hours": 1, "refund_percentage": 150}
    with override_settings(DJANGO_EVENTBOOK={"bookings": {"refund_tiers": [bad_tier]}}):
        with pytest.raises(ValueError, match="refund_percentage"):
            get_config()


def test_get_config_rejects_wrong_types() -> None:
    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"reverse_points_on_cancel": "yes"}}):
        with pytest.raises(TypeError, match="reverse_points_on_cancel"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"refund_redeemed_points": "yes"}}):
        with pytest.raises(TypeError, match="refund_redeemed_points"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"point_value": True}}):
        with pytest.raises(TypeError, match="must be a number"):
            get_config()

    with override_settings(DJANGO_EVENTBOOK={"bookings": {"refund_tiers": [(48, 100)]}}):
        with pytest.raises(TypeError, match="entries must be mappings"):
            get_config()


def test_numeric_values_are_coerced_to_decimal() -> None:
    with override_settings(
        DJANGO_EVENTBOOK={
            "pricing": {"group_discount_tiers": [(10, 25), (3, "5.5")], "early_bird_percentage": 12.5},
            "loyalty": {"point_value": "0.05", "referral_reward_cap": 20},
        }
    ):
        config = get_config()
        assert config.pricing.group_discount_tiers == ((3, Decimal("5.5")), (10, Decimal("25")))
        assert config.pricing.early_bird_percentage == Decimal("12.5")
        assert config.loyalty.point_value == Decimal("0.05")
        assert config.loyalty.referral_reward_cap == Decimal("20")


def test_refund_tiers_are_sorted_descending() -> None:
    with override_settings(
        DJANGO_EVENTBOOK={
            "bookings": {
                "refund_tiers": [
                    {"min_hours": 24, "refund_percentage": 50, "fee_rate": "0.1", "fee_cap": 5},
                    {"min_hours": 72, "refund_percentage": 100},
                ]
            }
        }
    ):
        tiers = get_config().bookings.refund_tiers
        assert tiers == (
            RefundTier(min_hours=72, refund_percentage=Decimal("100")),
            RefundTier(
                min_hours=24,
                refund_percentage=Decimal("50"),
                fee_rate=Decimal("0.1"),
                fee_cap=Decimal("5"),
            ),
        )


def test_get_config_cache_clears_on_setting_changed() -> None:
    with override_settings(DJANGO_EVENTBOOK={"currency": "USD"}):
        assert get_config().currency == "USD"

    with override_settings(DJANGO_EVENTBOOK={"currency": "EUR", "currency_symbol": "€"}):
        assert get_config().currency == "EUR"
        assert get_config().currency_symbol == "€"


def test_unknown_keys_are_rejected() -> None:
    with override_settings(DJANGO_EVENTBOOK={"loyalty": {"points_per_dollar": 2}}):
        with pytest.raises(TypeError):
            get_config()
