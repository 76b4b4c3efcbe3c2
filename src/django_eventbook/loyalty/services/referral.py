"""Referral reward service.

Grants the referrer's reward when a referred buyer completes a qualifying
booking. The referee's first-booking discount is applied at checkout and
only recorded here, never recomputed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from django_eventbook.loyalty.models import LoyaltyEntry, ReferralReward
from django_eventbook.loyalty.services.ledger import apply_tier_change, lock_account
from django_eventbook.pricing.discounts import ZERO, to_money
from django_eventbook.settings import get_config

if TYPE_CHECKING:
    from django_eventbook.pricing.models import Coupon

logger = logging.getLogger(__name__)


@dataclass
class ReferralResult:
    """Outcome of a referral award."""

    referrer_reward: Decimal
    referee_reward: Decimal
    referrer_points: int
    awarded: bool
    message: str

    def as_dict(self) -> dict[str, object]:
        return {
            "referrerReward": float(self.referrer_reward),
            "refereeReward": float(self.referee_reward),
            "referrerPoints": self.referrer_points,
            "message": self.message,
        }


class ReferralService:
    """Stateless service for referral rewards."""

    @staticmethod
    def calculate_referrer_reward(booking_amount: Decimal, coupon: "Coupon | None" = None) -> Decimal:
        """Return the referrer's currency reward for a qualifying booking.

        A referral coupon with a fixed ``referrer_reward`` uses that amount;
        otherwise the reward is the configured percentage of the booking.
        Either way it is capped per referral.
        """
        config = get_config().loyalty
        if coupon is not None and coupon.is_referral and coupon.referrer_reward > ZERO:
            reward = coupon.referrer_reward
        else:
            reward = booking_amount * config.referral_reward_percentage / Decimal(100)
        return to_money(min(reward, config.referral_reward_cap))

    @staticmethod
    def award_referral_points(
        referrer_user_id: str,
        referee_user_id: str,
        booking_amount: Decimal,
        *,
        booking_id: str = "",
        referee_discount: Decimal = ZERO,
        coupon: "Coupon | None" = None,
        now: datetime | None = None,
    ) -> ReferralResult:
        """Grant the referrer's reward for a referee's qualifying booking.

        The currency reward is converted to points at the redemption rate and
        credited as a non-expiring ``referral`` entry. Self-referrals and
        pairs that were already rewarded are no-ops with a zero reward.

        Args:
            referrer_user_id: The user who made the referral.
            referee_user_id: The referred user who booked.
            booking_amount: Amount paid for the qualifying booking.
            booking_id: The qualifying booking, recorded for audit.
            referee_discount: The first-booking discount the referee already
                received at checkout.
            coupon: The referral coupon used, if any.
            now: Award time. Defaults to the current time.

        Raises:
            ValidationError: If a user id is missing or the amount is negative.
        """
        if not referrer_user_id or not referee_user_id:
            raise ValidationError("Referrer and referee user ids are required.", code="missing_user_id")
        if not isinstance(booking_amount, Decimal) or booking_amount < ZERO:
            raise ValidationError("Booking amount must be a non-negative decimal.", code="invalid_booking_amount")

        if referrer_user_id == referee_user_id:
            return _no_reward("Users cannot refer themselves")

        now = now or timezone.now()
        reward = ReferralService.calculate_referrer_reward(booking_amount, coupon)
        point_value = get_config().loyalty.point_value
        points = int((reward / point_value).to_integral_value(rounding=ROUND_FLOOR))

        try:
            with transaction.atomic():
                referral = ReferralReward.objects.create(
                    referrer_user_id=referrer_user_id,
                    referee_user_id=referee_user_id,
                    booking_id=booking_id,
                    referrer_reward=reward,
                    referee_reward=to_money(referee_discount),
                    points=points,
                )
                if points > 0:
                    account = lock_account(referrer_user_id)
                    entry = LoyaltyEntry.objects.create(
                        account=account,
                        amount=points,
                        reason=LoyaltyEntry.Reason.REFERRAL,
                        description=f"Referral reward for {referee_user_id}",
                        booking_id=booking_id,
                        source_key=f"referral:{referee_user_id}",
                        awarded_at=now,
                    )
                    account.balance += points
                    account.lifetime_points += points
                    apply_tier_change(account, now)
                    account.save(update_fields=["balance", "lifetime_points", "tier", "updated_at"])
                    referral.entry = entry
                    referral.save(update_fields=["entry"])
        except IntegrityError:
            return _no_reward("This referral has already been rewarded")

        symbol = get_config().currency_symbol
        logger.info(
            "Referral reward of %s points (%s) granted to %s for referee %s",
            points,
            reward,
            referrer_user_id,
            referee_user_id,
        )
        return ReferralResult(
            referrer_reward=reward,
            referee_reward=referral.referee_reward,
            referrer_points=points,
            awarded=True,
            message=f"Referral bonus applied! You've earned {symbol}{reward} credit.",
        )


def _no_reward(message: str) -> ReferralResult:
    return ReferralResult(
        referrer_reward=ZERO,
        referee_reward=ZERO,
        referrer_points=0,
        awarded=False,
        message=message,
    )
