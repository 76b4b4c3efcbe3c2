"""TOML loader for event bootstrap configuration.

Loads and validates an events TOML file (see ``events.example.toml``) so that
events, their ticket types, and coupons can be created programmatically.
"""

import datetime
import re
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import Any

_REQUIRED_EVENT_FIELDS: set[str] = {"name", "starts_at"}
_REQUIRED_TICKET_FIELDS: set[str] = {"name", "price"}
_REQUIRED_COUPON_FIELDS: set[str] = {"code", "discount_type", "discount_value", "valid_from", "valid_until"}

_EVENT_DATETIME_FIELDS = ("starts_at", "registration_start", "registration_end", "early_bird_ends_at")
_COUPON_DATETIME_FIELDS = ("valid_from", "valid_until", "early_bird_end_date")
_DISCOUNT_TYPES = {"percentage", "fixed_amount", "buy_x_get_y"}

_SLUG_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"[-\s]+")


def _slugify(value: str) -> str:
    """Convert a string to a lowercase, hyphen-separated slug."""
    value = _SLUG_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub("-", value).strip("-")


def _ensure_slugs(items: list[dict[str, Any]], label: str) -> None:
    """Add a ``slug`` key derived from ``name`` to each item that lacks one."""
    for item in items:
        if "slug" not in item:
            item["slug"] = _slugify(item["name"])
    seen: set[str] = set()
    duplicates: set[str] = set()
    for idx, item in enumerate(items):
        slug = item["slug"]
        if not isinstance(slug, str) or not slug:
            msg = f"{label}[{idx}].slug must be a non-empty string"
            raise ValueError(msg)
        if slug in seen:
            duplicates.add(slug)
        seen.add(slug)
    if duplicates:
        msg = f"{label} has duplicate slugs: {', '.join(sorted(duplicates))}"
        raise ValueError(msg)


def _as_aware_datetime(value: object, label: str) -> datetime.datetime:
    """Turn a TOML date or offset date-time into an aware ``datetime``.

    Bare dates are read as midnight UTC. Local date-times without an offset
    are rejected because the event store works in absolute time.
    """
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            msg = f"{label} must include a UTC offset"
            raise ValueError(msg)
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min, tzinfo=datetime.UTC)
    msg = f"{label} must be a date or date-time"
    raise ValueError(msg)


def _validate_list(
    data: dict[str, Any],
    key: str,
    required_fields: set[str],
    label: str,
    *,
    must_exist: bool = False,
) -> list[dict[str, Any]]:
    """Validate an optional list of mappings and return it (empty when absent)."""
    items = data.get(key)
    if items is None:
        if must_exist:
            msg = f"{label} must be a non-empty list"
            raise ValueError(msg)
        return []
    if not isinstance(items, list) or (must_exist and len(items) == 0):
        msg = f"{label} must be a non-empty list"
        raise ValueError(msg)
    for idx, item in enumerate(items):
        _validate_mapping(item, required_fields, f"{label}[{idx}]")
    return items


def _validate_events(events: list[dict[str, Any]]) -> None:
    _ensure_slugs(events, "events")
    for idx, event in enumerate(events):
        label = f"events[{idx}]"
        for key in _EVENT_DATETIME_FIELDS:
            if key in event:
                event[key] = _as_aware_datetime(event[key], f"{label}.{key}")
        if "early_bird_percentage" in event:
            event["early_bird_percentage"] = _as_percentage(
                event["early_bird_percentage"], f"{label}.early_bird_percentage"
            )
        tickets = _validate_list(event, "tickets", _REQUIRED_TICKET_FIELDS, f"{label}.tickets")
        _ensure_slugs(tickets, f"{label}.tickets")
        for t_idx, ticket in enumerate(tickets):
            ticket["price"] = _as_money(ticket["price"], f"{label}.tickets[{t_idx}].price")
        event["tickets"] = tickets


def _validate_coupons(coupons: list[dict[str, Any]]) -> None:
    seen: set[str] = set()
    for idx, coupon in enumerate(coupons):
        label = f"coupons[{idx}]"
        code = coupon["code"]
        if not isinstance(code, str) or not code.strip():
            msg = f"{label}.code must be a non-empty string"
            raise ValueError(msg)
        coupon["code"] = code.strip().upper()
        if coupon["code"] in seen:
            msg = f"coupons has duplicate code: {coupon['code']}"
            raise ValueError(msg)
        seen.add(coupon["code"])

        if coupon["discount_type"] not in _DISCOUNT_TYPES:
            msg = f"{label}.discount_type must be one of: {', '.join(sorted(_DISCOUNT_TYPES))}"
            raise ValueError(msg)
        coupon["discount_value"] = _as_money(coupon["discount_value"], f"{label}.discount_value")
        if coupon["discount_type"] == "percentage" and coupon["discount_value"] > 100:
            msg = f"{label}.discount_value must be between 0 and 100 for percentage coupons"
            raise ValueError(msg)
        for key in _COUPON_DATETIME_FIELDS:
            if key in coupon:
                coupon[key] = _as_aware_datetime(coupon[key], f"{label}.{key}")
        if coupon["valid_until"] <= coupon["valid_from"]:
            msg = f"{label}.valid_until must be after valid_from"
            raise ValueError(msg)
        for key in ("events", "categories", "ticket_types"):
            value = coupon.get(key, [])
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                msg = f"{label}.{key} must be a list of strings"
                raise TypeError(msg)


def _as_money(value: object, label: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        msg = f"{label} must be a number"
        raise TypeError(msg)
    amount = Decimal(value)
    if amount < 0:
        msg = f"{label} must not be negative"
        raise ValueError(msg)
    return amount


def _as_percentage(value: object, label: str) -> Decimal:
    percentage = _as_money(value, label)
    if percentage > 100:
        msg = f"{label} must be between 0 and 100"
        raise ValueError(msg)
    return percentage


def load_events_config(path: str | Path) -> dict[str, Any]:
    """Load and validate an events TOML configuration file.

    Args:
        path: Filesystem path to the TOML file.

    Returns:
        A mapping with ``events`` (each with its ``tickets``) and ``coupons``
        lists, with native types: aware ``datetime`` values and ``Decimal``
        amounts. Slugs are derived from ``name`` when not given and coupon
        codes are upper-cased.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TypeError: If a table or value has the wrong type.
        ValueError: If required keys or fields are missing, values are out of
            range, or the file is not valid TOML.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Events config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as fh:
        try:
            data: dict[str, Any] = tomllib.load(fh, parse_float=Decimal)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc

    events = _validate_list(data, "events", _REQUIRED_EVENT_FIELDS, "events", must_exist=True)
    _validate_events(events)
    coupons = _validate_list(data, "coupons", _REQUIRED_COUPON_FIELDS, "coupons")
    _validate_coupons(coupons)

    return {"events": events, "coupons": coupons}


def _validate_mapping(mapping: object, required: set[str], label: str) -> None:
    """Validate that *mapping* is a dict containing all *required* keys.

    Raises:
        TypeError: If *mapping* is not a dict.
        ValueError: If *mapping* is missing required keys.
    """
    if not isinstance(mapping, dict):
        msg = f"{label} must be a mapping, got {type(mapping).__name__}"
        raise TypeError(msg)
    missing = required - mapping.keys()
    if missing:
        msg = f"{label} is missing required fields: {', '.join(sorted(missing))}"
        raise ValueError(msg)
