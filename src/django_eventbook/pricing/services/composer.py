"""Discount composition.

Combines a coupon with the automatic discounts into one payable amount.
Discounts are additive: each one is computed against the original order
amount, never against a progressively discounted remainder, so every line
of the breakdown is independently explainable. The total discount is capped
at the original amount.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError

from django_eventbook.pricing.discounts import ZERO, CouponDiscount, DiscountResult, to_money


@dataclass
class PriceQuote:
    """Final pricing for an order."""

    original_amount: Decimal
    total_discount: Decimal
    final_amount: Decimal
    applied_discounts: list[DiscountResult] = field(default_factory=list)

    def discount_for(self, kind: str) -> Decimal:
        """Return the applied amount for one discount kind (``"coupon"``, ``"group"``, ...)."""
        return sum((d.discount_amount for d in self.applied_discounts if d.kind == kind), ZERO)

    def as_dict(self) -> dict[str, object]:
        """Serialize to the JSON shape other layers rely on."""
        return {
            "originalAmount": float(self.original_amount),
            "discountAmount": float(self.total_discount),
            "finalAmount": float(self.final_amount),
            "savings": float(self.total_discount),
            "appliedDiscounts": [d.as_dict() for d in self.applied_discounts],
        }


def compose(
    order_amount: Decimal,
    coupon: CouponDiscount | None = None,
    automatic: Iterable[DiscountResult] = (),
) -> PriceQuote:
    """Combine a coupon and automatic discounts into a single price.

    Args:
        order_amount: The original, undiscounted order amount.
        coupon: The coupon result for the order, if a code was entered.
        automatic: Results of the automatic evaluators (early-bird, group,
            referral, loyalty). Invalid results are skipped.

    Returns:
        A :class:`PriceQuote` whose ``final_amount`` is never negative.

    Raises:
        ValidationError: If the order amount is negative or more than one
            coupon is supplied.
    """
    if order_amount < ZERO:
        raise ValidationError("Order amount must not be negative.", code="invalid_order_amount")

    automatic = list(automatic)
    if any(isinstance(result, CouponDiscount) for result in automatic):
        raise ValidationError("Only one coupon may be applied per order.", code="multiple_coupons")

    candidates: list[DiscountResult] = []
    if coupon is not None:
        candidates.append(coupon)
    candidates.extend(automatic)

    applied = [result for result in candidates if result.is_valid and result.discount_amount > ZERO]
    requested = sum((result.discount_amount for result in applied), ZERO)
    total_discount = to_money(min(requested, order_amount))

    return PriceQuote(
        original_amount=order_amount,
        total_discount=total_discount,
        final_amount=to_money(order_amount - total_discount),
        applied_discounts=applied,
    )
