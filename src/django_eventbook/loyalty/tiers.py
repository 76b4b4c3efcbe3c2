"""Loyalty tier table: thresholds, accrual multipliers, and perks."""

from dataclasses import dataclass
from decimal import Decimal

from django_eventbook.loyalty.models import LoyaltyTier


@dataclass(frozen=True, slots=True)
class TierBenefits:
    """What a tier grants its members."""

    tier: str
    threshold: int
    multiplier: Decimal
    upgrade_bonus: int
    early_access: bool
    free_ticket_upgrades: int
    priority_support: bool
    exclusive_events: bool

    @property
    def perks(self) -> dict[str, object]:
        return {
            "earlyAccess": self.early_access,
            "freeTicketUpgrades": self.free_ticket_upgrades,
            "prioritySupport": self.priority_support,
            "exclusiveEvents": self.exclusive_events,
        }

    def as_dict(self) -> dict[str, object]:
        return {"tier": self.tier, "pointsMultiplier": float(self.multiplier), **self.perks}


# Ordered lowest to highest lifetime-points threshold.
TIERS: tuple[TierBenefits, ...] = (
    TierBenefits(LoyaltyTier.BRONZE.value, 0, Decimal("1"), 0, False, 0, False, False),
    TierBenefits(LoyaltyTier.SILVER.value, 1000, Decimal("1.25"), 100, True, 1, False, False),
    TierBenefits(LoyaltyTier.GOLD.value, 5000, Decimal("1.5"), 250, True, 2, True, True),
    TierBenefits(LoyaltyTier.PLATINUM.value, 15000, Decimal("2"), 500, True, 5, True, True),
)

_BY_TIER = {benefits.tier: benefits for benefits in TIERS}


def get_tier_benefits(tier: str) -> TierBenefits:
    """Look up a tier's benefits. Unknown tiers get Bronze benefits."""
    return _BY_TIER.get(str(tier).lower(), TIERS[0])


def tier_for_points(lifetime_points: int) -> str:
    """Return the highest tier whose threshold ``lifetime_points`` reaches."""
    current = TIERS[0]
    for benefits in TIERS:
        if lifetime_points >= benefits.threshold:
            current = benefits
    return current.tier


def points_to_next_tier(lifetime_points: int) -> int:
    """Return the points still needed for the next tier, 0 at the top tier."""
    for benefits in TIERS:
        if lifetime_points < benefits.threshold:
            return benefits.threshold - lifetime_points
    return 0
