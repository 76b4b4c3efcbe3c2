"""Typed configuration for django-eventbook.

Reads a single ``DJANGO_EVENTBOOK`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from django_eventbook.settings import get_config

    config = get_config()
    config.pricing.group_discount_tiers
    config.loyalty.point_value
    config.bookings.refund_tiers
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class RefundTier:
    """One row of the cancellation refund table.

    A tier applies when the hours remaining before the event are strictly
    greater than ``min_hours``. Tiers are evaluated from the largest
    ``min_hours`` down; the first match wins. The processing fee is
    ``fee_rate`` of the booking total, capped at ``fee_cap``.
    """

    min_hours: int
    refund_percentage: Decimal
    fee_rate: Decimal = Decimal("0")
    fee_cap: Decimal | None = None


@dataclass(frozen=True, slots=True)
class PricingConfig:
    """Discount engine configuration."""

    group_discount_tiers: tuple[tuple[int, Decimal], ...] = (
        (5, Decimal("15")),
        (10, Decimal("20")),
    )
    early_bird_percentage: Decimal = Decimal("20")
    early_bird_window_days: int | None = None
    referee_discount_percentage: Decimal = Decimal("15")
    max_points_discount_fraction: Decimal = Decimal("0.5")


@dataclass(frozen=True, slots=True)
class LoyaltyConfig:
    """Loyalty ledger and referral configuration."""

    points_per_currency_unit: Decimal = Decimal("1")
    point_value: Decimal = Decimal("0.01")
    expiry_days: int = 365
    referral_reward_percentage: Decimal = Decimal("10")
    referral_reward_cap: Decimal = Decimal("50.00")
    reverse_points_on_cancel: bool = False
    refund_redeemed_points: bool = True


@dataclass(frozen=True, slots=True)
class BookingConfig:
    """Booking lifecycle configuration."""

    modification_cutoff_hours: int = 24
    cancellation_cutoff_hours: int = 0
    refund_tiers: tuple[RefundTier, ...] = (
        RefundTier(min_hours=48, refund_percentage=Decimal("100")),
        RefundTier(min_hours=24, refund_percentage=Decimal("50")),
    )
    reference_prefix: str = "BKG"


@dataclass(frozen=True, slots=True)
class EventbookConfig:
    """Top-level django-eventbook configuration."""

    pricing: PricingConfig = field(default_factory=PricingConfig)
    loyalty: LoyaltyConfig = field(default_factory=LoyaltyConfig)
    bookings: BookingConfig = field(default_factory=BookingConfig)
    currency: str = "USD"
    currency_symbol: str = "$"


def _as_decimal(value: object, key: str) -> Decimal:
    """Coerce a settings value to ``Decimal`` with a clear error message."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        msg = f"DJANGO_EVENTBOOK[{key!r}] must be a number"
        raise TypeError(msg)
    return Decimal(str(value))


def _build_pricing(data: Mapping) -> PricingConfig:
    data = dict(data)
    if "group_discount_tiers" in data:
        data["group_discount_tiers"] = tuple(
            sorted(
                (int(min_tickets), _as_decimal(pct, "pricing.group_discount_tiers"))
                for min_tickets, pct in data["group_discount_tiers"]
            )
        )
    for key in ("early_bird_percentage", "referee_discount_percentage", "max_points_discount_fraction"):
        if key in data:
            data[key] = _as_decimal(data[key], f"pricing.{key}")
    return PricingConfig(**data)


def _build_loyalty(data: Mapping) -> LoyaltyConfig:
    data = dict(data)
    for key in ("points_per_currency_unit", "point_value", "referral_reward_percentage", "referral_reward_cap"):
        if key in data:
            data[key] = _as_decimal(data[key], f"loyalty.{key}")
    return LoyaltyConfig(**data)


def _build_bookings(data: Mapping) -> BookingConfig:
    data = dict(data)
    if "refund_tiers" in data:
        tiers = []
        for raw_tier in data["refund_tiers"]:
            if not isinstance(raw_tier, Mapping):
                msg = "DJANGO_EVENTBOOK['bookings']['refund_tiers'] entries must be mappings"
                raise TypeError(msg)
            fee_cap = raw_tier.get("fee_cap")
            tiers.append(
                RefundTier(
                    min_hours=int(raw_tier["min_hours"]),
                    refund_percentage=_as_decimal(raw_tier["refund_percentage"], "bookings.refund_tiers"),
                    fee_rate=_as_decimal(raw_tier.get("fee_rate", 0), "bookings.refund_tiers"),
                    fee_cap=_as_decimal(fee_cap, "bookings.refund_tiers") if fee_cap is not None else None,
                )
            )
        data["refund_tiers"] = tuple(sorted(tiers, key=lambda tier: tier.min_hours, reverse=True))
    return BookingConfig(**data)


@functools.lru_cache(maxsize=1)
def get_config() -> EventbookConfig:
    """Build and return the eventbook configuration.

    Reads ``settings.DJANGO_EVENTBOOK`` (a plain dict) and returns a frozen
    :class:`EventbookConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_EVENTBOOK", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_EVENTBOOK must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    pricing_data = raw_data.pop("pricing", {})
    loyalty_data = raw_data.pop("loyalty", {})
    bookings_data = raw_data.pop("bookings", {})
    if not isinstance(pricing_data, Mapping):
        msg = "DJANGO_EVENTBOOK['pricing'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    if not isinstance(loyalty_data, Mapping):
        msg = "DJANGO_EVENTBOOK['loyalty'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    if not isinstance(bookings_data, Mapping):
        msg = "DJANGO_EVENTBOOK['bookings'] must be a mapping (dict-like object)"
        raise TypeError(msg)

    config = EventbookConfig(
        pricing=_build_pricing(pricing_data),
        loyalty=_build_loyalty(loyalty_data),
        bookings=_build_bookings(bookings_data),
        **raw_data,
    )
    _validate_eventbook_config(config)
    return config


def _validate_eventbook_config(config: EventbookConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "DJANGO_EVENTBOOK['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.currency_symbol, str) or not config.currency_symbol.strip():
        msg = "DJANGO_EVENTBOOK['currency_symbol'] must be a non-empty string"
        raise ValueError(msg)
    for min_tickets, pct in config.pricing.group_discount_tiers:
        if min_tickets < 1 or not 0 <= pct <= 100:
            msg = "DJANGO_EVENTBOOK['pricing']['group_discount_tiers'] needs positive sizes and 0-100 percentages"
            raise ValueError(msg)
    if not 0 <= config.pricing.max_points_discount_fraction <= 1:
        msg = "DJANGO_EVENTBOOK['pricing']['max_points_discount_fraction'] must be between 0 and 1"
        raise ValueError(msg)
    if config.loyalty.point_value <= 0:
        msg = "DJANGO_EVENTBOOK['loyalty']['point_value'] must be positive"
        raise ValueError(msg)
    if not isinstance(config.loyalty.expiry_days, int) or config.loyalty.expiry_days <= 0:
        msg = "DJANGO_EVENTBOOK['loyalty']['expiry_days'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.loyalty.reverse_points_on_cancel, bool):
        msg = "DJANGO_EVENTBOOK['loyalty']['reverse_points_on_cancel'] must be a boolean"
        raise TypeError(msg)
    if not isinstance(config.loyalty.refund_redeemed_points, bool):
        msg = "DJANGO_EVENTBOOK['loyalty']['refund_redeemed_points'] must be a boolean"
        raise TypeError(msg)
    if config.bookings.modification_cutoff_hours < 0 or config.bookings.cancellation_cutoff_hours < 0:
        msg = "DJANGO_EVENTBOOK['bookings'] cutoff hours must be non-negative"
        raise ValueError(msg)
    for tier in config.bookings.refund_tiers:
        if not 0 <= tier.refund_percentage <= 100:
            msg = "DJANGO_EVENTBOOK['bookings']['refund_tiers'] refund_percentage must be between 0 and 100"
            raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_EVENTBOOK":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_eventbook.settings.clear_config_cache")
