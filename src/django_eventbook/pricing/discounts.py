"""Discount result types produced by the evaluators and consumed by the composer.

Each discount mechanism has its own result class carrying only the fields it
needs. Results are transient: they are never stored, only the coupon usage or
ledger entries they lead to are.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to whole cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class DiscountResult:
    """Base shape shared by every discount result.

    Attributes:
        discount_amount: Currency amount taken off the original order.
        message: Human-readable explanation, shown to the buyer as-is.
        is_valid: ``False`` for a rejected or inapplicable discount.
        discount_percentage: The percentage applied, for percentage-based
            discounts.
        reason: Machine-checkable rejection code, empty when valid.
    """

    kind: ClassVar[str] = ""

    discount_amount: Decimal = ZERO
    message: str = ""
    is_valid: bool = True
    discount_percentage: Decimal | None = None
    reason: str = ""

    def as_dict(self) -> dict[str, object]:
        """Serialize to the JSON shape other layers rely on."""
        return {
            "type": self.kind,
            "discountAmount": float(self.discount_amount),
            "discountPercentage": float(self.discount_percentage) if self.discount_percentage is not None else None,
            "message": self.message,
            "isValid": self.is_valid,
        }


@dataclass(frozen=True, slots=True)
class CouponDiscount(DiscountResult):
    """Outcome of validating or redeeming a coupon code."""

    kind: ClassVar[str] = "coupon"

    code: str = ""
    discount_type: str = ""

    def as_dict(self) -> dict[str, object]:
        data = DiscountResult.as_dict(self)
        data["code"] = self.code
        data["discountType"] = self.discount_type
        return data


@dataclass(frozen=True, slots=True)
class EarlyBirdDiscount(DiscountResult):
    """Automatic discount for orders placed before the early-bird deadline."""

    kind: ClassVar[str] = "early_bird"


@dataclass(frozen=True, slots=True)
class GroupDiscount(DiscountResult):
    """Automatic discount keyed to the total ticket count of an order."""

    kind: ClassVar[str] = "group"

    ticket_count: int = 0


@dataclass(frozen=True, slots=True)
class ReferralDiscount(DiscountResult):
    """First-booking discount for a referred buyer."""

    kind: ClassVar[str] = "referral"


@dataclass(frozen=True, slots=True)
class LoyaltyDiscount(DiscountResult):
    """Discount paid for with loyalty points."""

    kind: ClassVar[str] = "loyalty"

    points_used: int = 0

    def as_dict(self) -> dict[str, object]:
        data = DiscountResult.as_dict(self)
        data["pointsUsed"] = self.points_used
        return data
