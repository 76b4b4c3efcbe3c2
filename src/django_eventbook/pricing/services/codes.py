"""Coupon code bulk generation service.

Provides functions for generating batches of unique, cryptographically
random coupon codes within a single database transaction.
"""

import datetime
import re
import secrets
import string
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from django_eventbook.pricing.models import Coupon

if TYPE_CHECKING:
    from django_eventbook.events.models import Event

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 8
_MAX_COUNT = 500
_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")


@dataclass
class CouponBulkConfig:
    """Configuration for a bulk coupon generation request.

    Attributes:
        prefix: Fixed string prepended to each generated code.
        count: Number of coupon codes to generate (1-500).
        discount_type: One of the ``Coupon.DiscountType`` values.
        discount_value: Percentage (0-100) or fixed amount depending on type.
        valid_from: Start of the validity window.
        valid_until: End of the validity window.
        max_uses: Maximum redemptions of each code. ``None`` means unlimited.
        max_uses_per_user: Maximum redemptions of each code per user.
        minimum_order_amount: Minimum order amount for each code.
        events: Optional events each code is restricted to.
        created_by: Organizer id recorded on each coupon.
    """

    prefix: str
    count: int
    discount_type: str
    discount_value: Decimal
    valid_from: datetime.datetime
    valid_until: datetime.datetime
    max_uses: int | None = 1
    max_uses_per_user: int | None = 1
    minimum_order_amount: Decimal | None = None
    events: list["Event"] = field(default_factory=list)
    created_by: str = ""


def event_code_prefix(event_name: str) -> str:
    """Return a four-character promotional prefix derived from an event name.

    ``"PyCon US 2027"`` becomes ``"PYCO"``.
    """
    return _NON_ALNUM_RE.sub("", event_name.upper())[:4]


def _generate_unique_code(prefix: str, existing_codes: set[str]) -> str:
    """Generate a single coupon code that does not collide with existing ones.

    Produces codes in the format ``{prefix}{8_random_chars}`` where the random
    portion uses uppercase alphanumeric characters (A-Z, 0-9) for readability.
    Retries up to 100 times if a collision is detected.

    Raises:
        RuntimeError: If a unique code cannot be generated after 100 attempts.
    """
    for _ in range(100):
        random_part = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))
        code = f"{prefix}{random_part}"
        if code not in existing_codes:
            return code
    msg = f"Failed to generate a unique coupon code with prefix '{prefix}' after 100 attempts"
    raise RuntimeError(msg)


def generate_coupon_codes(config: CouponBulkConfig) -> list[Coupon]:
    """Generate a batch of unique coupon codes sharing one configuration.

    The coupons are inserted in a single ``bulk_create`` call wrapped in a
    transaction, and event restrictions are written with one ``bulk_create``
    on the through table.

    Args:
        config: Bulk generation configuration.

    Returns:
        List of newly created ``Coupon`` instances.

    Raises:
        ValueError: If ``config.count`` is less than 1 or greater than 500.
        RuntimeError: If unique code generation fails after retries.
        IntegrityError: If a code collision occurs at the database level despite
            the in-memory uniqueness check (race condition safeguard).
    """
    if config.count < 1 or config.count > _MAX_COUNT:
        msg = f"count must be between 1 and {_MAX_COUNT}, got {config.count}"
        raise ValueError(msg)

    prefix = config.prefix.strip().upper()
    qs = Coupon.objects.all()
    if prefix:
        qs = qs.filter(code__startswith=prefix)
    existing_codes: set[str] = set(qs.values_list("code", flat=True))

    coupons_to_create: list[Coupon] = []
    for _ in range(config.count):
        code = _generate_unique_code(prefix, existing_codes)
        existing_codes.add(code)
        coupon = Coupon(
            code=code,
            discount_type=config.discount_type,
            discount_value=config.discount_value,
            valid_from=config.valid_from,
            valid_until=config.valid_until,
            max_uses=config.max_uses,
            max_uses_per_user=config.max_uses_per_user,
            created_by=config.created_by,
        )
        if config.minimum_order_amount is not None:
            coupon.minimum_order_amount = config.minimum_order_amount
        coupons_to_create.append(coupon)

    with transaction.atomic():
        created = Coupon.objects.bulk_create(coupons_to_create)

        if config.events:
            ThroughModel = Coupon.applicable_events.through  # noqa: N806
            ThroughModel.objects.bulk_create(
                [ThroughModel(coupon_id=coupon.pk, event_id=event.pk) for coupon in created for event in config.events]
            )

    return created
