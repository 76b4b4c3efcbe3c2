"""Loyalty ledger service.

Maintains each account's append-only point ledger: booking accruals with an
expiry horizon, redemptions for cash-equivalent discounts, expiry sweeps,
and cancellation reversals. Every mutation runs under a row lock on the
account so balance checks and the entries they justify are written from one
consistent snapshot.

The remaining value of each positive entry ("lot") is never stored; it is
derived by replaying the immutable history in order: redemptions consume open
lots earliest-expiring first, and expiration or reversal entries zero the one
lot they reference.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.utils import timezone

from django_eventbook.loyalty.models import LoyaltyAccount, LoyaltyEntry
from django_eventbook.loyalty.tiers import TierBenefits, get_tier_benefits, tier_for_points
from django_eventbook.pricing.discounts import ZERO, LoyaltyDiscount, to_money
from django_eventbook.settings import get_config

logger = logging.getLogger(__name__)


@dataclass
class AccrualResult:
    """Outcome of awarding points."""

    points_earned: int
    new_balance: int
    tier: str
    tier_bonus: int = 0
    created: bool = True

    def as_dict(self) -> dict[str, object]:
        return {
            "pointsEarned": self.points_earned,
            "newBalance": self.new_balance,
            "tier": self.tier,
            "tierBonus": self.tier_bonus,
        }


@dataclass
class RedemptionResult:
    """Outcome of redeeming points."""

    success: bool
    discount_amount: Decimal
    remaining_points: int
    message: str

    def as_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "discountAmount": float(self.discount_amount),
            "remainingPoints": self.remaining_points,
            "message": self.message,
        }


@dataclass
class LeaderboardEntry:
    """One row of the points leaderboard."""

    user_id: str
    email: str
    points: int
    tier: str

    def as_dict(self) -> dict[str, object]:
        return {"userId": self.user_id, "email": self.email, "points": self.points, "tier": self.tier}


class LoyaltyService:
    """Stateless service for loyalty ledger operations."""

    @staticmethod
    def get_account(user_id: str, email: str = "") -> LoyaltyAccount:
        """Return the user's loyalty account, creating it on first lookup.

        Raises:
            ValidationError: If ``user_id`` is empty.
        """
        _require_user_id(user_id)
        account, created = LoyaltyAccount.objects.get_or_create(user_id=user_id, defaults={"email": email})
        if not created and email and not account.email:
            account.email = email
            account.save(update_fields=["email", "updated_at"])
        return account

    @staticmethod
    def award_booking_points(
        user_id: str,
        booking_id: str,
        event_id: str,
        booking_amount: Decimal,
        event_title: str,
        *,
        idempotency_key: str = "",
        now: datetime | None = None,
    ) -> AccrualResult:
        """Credit the points earned by a booking.

        Points are ``floor(booking_amount * points_per_currency_unit)``
        boosted by the multiplier of the account's tier *before* this accrual,
        and expire after the configured horizon. Crossing a tier threshold
        adds a one-off, expiring tier bonus that does not count toward
        lifetime points.

        The accrual is keyed by ``idempotency_key`` (default: the booking id),
        so a retried call returns the current balance with ``created=False``
        instead of granting twice.

        Raises:
            ValidationError: If an id is missing or the amount is negative.
        """
        _require_user_id(user_id)
        if not booking_id:
            raise ValidationError("A booking id is required to award points.", code="missing_booking_id")
        if not isinstance(booking_amount, Decimal) or booking_amount < ZERO:
            raise ValidationError("Booking amount must be a non-negative decimal.", code="invalid_booking_amount")

        config = get_config().loyalty
        now = now or timezone.now()
        source_key = idempotency_key or f"booking:{booking_id}"

        with transaction.atomic():
            account = lock_account(user_id)
            if account.entries.filter(source_key=source_key).exists():
                return AccrualResult(0, account.balance, account.tier, created=False)

            base_points = (booking_amount * config.points_per_currency_unit).to_integral_value(rounding=ROUND_FLOOR)
            multiplier = get_tier_benefits(account.tier).multiplier
            points = int((base_points * multiplier).to_integral_value(rounding=ROUND_FLOOR))
            if points <= 0:
                return AccrualResult(0, account.balance, account.tier, created=False)

            try:
                with transaction.atomic():
                    LoyaltyEntry.objects.create(
                        account=account,
                        amount=points,
                        reason=LoyaltyEntry.Reason.BOOKING_ACCRUAL,
                        description=f"Earned points for booking {event_title}",
                        booking_id=booking_id,
                        event_id=str(event_id),
                        source_key=source_key,
                        awarded_at=now,
                        expires_at=now + timedelta(days=config.expiry_days),
                    )
            except IntegrityError:
                return AccrualResult(0, account.balance, account.tier, created=False)

            account.balance += points
            account.lifetime_points += points
            bonus = apply_tier_change(account, now)
            account.save(update_fields=["balance", "lifetime_points", "tier", "updated_at"])

        logger.info("Awarded %s points to %s for booking %s (%s tier)", points, user_id, booking_id, account.tier)
        return AccrualResult(points, account.balance, account.tier, tier_bonus=bonus)

    @staticmethod
    def grant_manual_points(
        user_id: str,
        points: int,
        description: str,
        *,
        source_key: str = "",
        now: datetime | None = None,
    ) -> AccrualResult:
        """Grant a staff-issued goodwill credit that expires like an accrual."""
        _require_user_id(user_id)
        _require_points(points)
        now = now or timezone.now()
        with transaction.atomic():
            account = lock_account(user_id)
            if source_key and account.entries.filter(source_key=source_key).exists():
                return AccrualResult(0, account.balance, account.tier, created=False)
            LoyaltyEntry.objects.create(
                account=account,
                amount=points,
                reason=LoyaltyEntry.Reason.MANUAL,
                description=description,
                source_key=source_key,
                awarded_at=now,
                expires_at=now + timedelta(days=get_config().loyalty.expiry_days),
            )
            account.balance += points
            account.save(update_fields=["balance", "updated_at"])
        logger.info("Granted %s manual points to %s: %s", points, user_id, description)
        return AccrualResult(points, account.balance, account.tier)

    @staticmethod
    def redeem_points(
        user_id: str,
        points: int,
        source_id: str,
        description: str,
        *,
        now: datetime | None = None,
    ) -> RedemptionResult:
        """Spend points for a cash-equivalent discount.

        Expired lots are swept first so the eligibility check only counts
        points that are still valid. A request for more points than the
        balance is rejected, never partially filled.

        Raises:
            ValidationError: If ``points`` is not a positive integer.
        """
        _require_user_id(user_id)
        _require_points(points)
        now = now or timezone.now()

        with transaction.atomic():
            account = lock_account(user_id)
            _expire_lots(account, now)
            if points > account.balance:
                return RedemptionResult(
                    success=False,
                    discount_amount=ZERO,
                    remaining_points=account.balance,
                    message="Insufficient points for redemption",
                )
            LoyaltyEntry.objects.create(
                account=account,
                amount=-points,
                reason=LoyaltyEntry.Reason.REDEMPTION,
                description=description,
                booking_id=source_id,
                awarded_at=now,
            )
            account.balance -= points
            account.save(update_fields=["balance", "updated_at"])

        discount = points_value(points)
        symbol = get_config().currency_symbol
        logger.info("Redeemed %s points from %s for %s%s", points, user_id, symbol, discount)
        return RedemptionResult(
            success=True,
            discount_amount=discount,
            remaining_points=account.balance,
            message=f"Successfully redeemed {symbol}{discount} credit!",
        )

    @staticmethod
    def clean_expired_points(user_id: str, *, now: datetime | None = None) -> int:
        """Expire every lot past its ``expires_at`` and return the points removed.

        Each expired lot with a remaining value gets one compensating
        ``expiration`` entry; lots already compensated are skipped, so the
        sweep is safe to repeat.
        """
        _require_user_id(user_id)
        now = now or timezone.now()
        with transaction.atomic():
            account = lock_account(user_id)
            expired = _expire_lots(account, now)
        if expired:
            logger.info("Expired %s points for %s", expired, user_id)
        return expired

    @staticmethod
    def reverse_booking_points(user_id: str, booking_id: str, *, now: datetime | None = None) -> int:
        """Claw back what is left of a booking's accrual lots.

        Only the unspent remainder of each lot is reversed, so the balance
        never goes negative. Lifetime points are left untouched.
        """
        _require_user_id(user_id)
        now = now or timezone.now()
        with transaction.atomic():
            account = lock_account(user_id)
            entries = list(account.entries.order_by("pk"))
            remaining = _replay(entries)
            reversed_points = 0
            for entry in entries:
                if entry.reason != LoyaltyEntry.Reason.BOOKING_ACCRUAL or entry.booking_id != booking_id:
                    continue
                left = remaining.get(entry.pk, 0)
                if left <= 0:
                    continue
                LoyaltyEntry.objects.create(
                    account=account,
                    amount=-left,
                    reason=LoyaltyEntry.Reason.REVERSAL,
                    description=f"Booking {booking_id} cancelled",
                    booking_id=booking_id,
                    reverses=entry,
                    awarded_at=now,
                )
                reversed_points += left
            if reversed_points:
                account.balance -= reversed_points
                account.save(update_fields=["balance", "updated_at"])
        if reversed_points:
            logger.info("Reversed %s points from %s for cancelled booking %s", reversed_points, user_id, booking_id)
        return reversed_points

    @staticmethod
    def refund_redeemed_points(
        user_id: str,
        booking_id: str,
        refund_percentage: Decimal,
        *,
        now: datetime | None = None,
    ) -> int:
        """Credit back the refunded share of the points spent on a booking.

        The points redeemed against ``booking_id`` are returned in proportion
        to ``refund_percentage`` (rounded down) as a new lot that expires like
        an accrual. Keyed by ``"<booking_id>:refund"``, so a booking is
        refunded at most once. Lifetime points are left untouched.

        Returns:
            The points credited (0 when nothing was redeemed or already refunded).
        """
        _require_user_id(user_id)
        if not booking_id:
            raise ValidationError("A booking id is required to refund points.", code="missing_booking_id")
        now = now or timezone.now()
        source_key = f"{booking_id}:refund"

        with transaction.atomic():
            account = lock_account(user_id)
            if account.entries.filter(source_key=source_key).exists():
                return 0
            redeemed = -(
                account.entries.filter(reason=LoyaltyEntry.Reason.REDEMPTION, booking_id=booking_id).aggregate(
                    total=models.Sum("amount")
                )["total"]
                or 0
            )
            points = int((Decimal(redeemed) * refund_percentage / Decimal(100)).to_integral_value(rounding=ROUND_FLOOR))
            if points <= 0:
                return 0
            LoyaltyEntry.objects.create(
                account=account,
                amount=points,
                reason=LoyaltyEntry.Reason.REDEMPTION_REFUND,
                description=f"Points refunded for cancelled booking {booking_id}",
                booking_id=booking_id,
                source_key=source_key,
                awarded_at=now,
                expires_at=now + timedelta(days=get_config().loyalty.expiry_days),
            )
            account.balance += points
            account.save(update_fields=["balance", "updated_at"])

        logger.info("Refunded %s redeemed points to %s for cancelled booking %s", points, user_id, booking_id)
        return points

    @staticmethod
    def available_points(user_id: str, *, now: datetime | None = None) -> int:
        """Return the spendable balance at ``now`` without writing anything."""
        account = LoyaltyAccount.objects.filter(user_id=user_id).first()
        if account is None:
            return 0
        now = now or timezone.now()
        entries = list(account.entries.order_by("pk"))
        remaining = _replay(entries)
        stale = sum(
            remaining.get(entry.pk, 0) for entry in entries if entry.expires_at is not None and entry.expires_at <= now
        )
        return account.balance - stale

    @staticmethod
    def quote_points_discount(
        points: int,
        order_amount: Decimal,
        *,
        payable: Decimal | None = None,
    ) -> LoyaltyDiscount:
        """Price spending up to ``points`` on an order, without redeeming them.

        Points may cover at most the configured share of the order, and never
        more than ``payable``, the amount the other discounts leave to pay.
        """
        config = get_config()
        max_discount = order_amount * config.pricing.max_points_discount_fraction
        if payable is not None:
            max_discount = min(max_discount, max(payable, ZERO))
        max_points = int((max_discount / config.loyalty.point_value).to_integral_value(rounding=ROUND_FLOOR))
        points_used = max(min(points, max_points), 0)
        if points_used == 0:
            return LoyaltyDiscount(message="No loyalty points applied", is_valid=False, reason="no_points")
        discount = points_value(points_used)
        return LoyaltyDiscount(
            discount_amount=discount,
            points_used=points_used,
            message=f"{points_used} points applied for {config.currency_symbol}{discount} off",
        )

    @staticmethod
    def get_tier_benefits(tier: str) -> TierBenefits:
        """Return the multiplier and perks of a tier."""
        return get_tier_benefits(tier)

    @staticmethod
    def get_loyalty_leaderboard(limit: int = 10) -> list[LeaderboardEntry]:
        """Return the accounts with the highest balances, highest first."""
        if limit < 1:
            raise ValidationError("Leaderboard limit must be at least 1.", code="invalid_limit")
        accounts = LoyaltyAccount.objects.order_by("-balance", "user_id")[:limit]
        return [LeaderboardEntry(a.user_id, a.email, a.balance, a.tier) for a in accounts]


def points_value(points: int) -> Decimal:
    """Convert points to their cash-equivalent discount."""
    return to_money(Decimal(points) * get_config().loyalty.point_value)


def ledger_balance(account: LoyaltyAccount) -> int:
    """Return the sum of an account's entries, which must equal its balance."""
    return account.entries.aggregate(total=models.Sum("amount"))["total"] or 0


def _require_user_id(user_id: str) -> None:
    if not user_id:
        raise ValidationError("A user id is required.", code="missing_user_id")


def _require_points(points: int) -> None:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("Points must be a positive whole number.", code="invalid_points")


def lock_account(user_id: str) -> LoyaltyAccount:
    """Return the user's account locked for update, creating it if needed."""
    try:
        with transaction.atomic():
            LoyaltyAccount.objects.get_or_create(user_id=user_id)
    except IntegrityError:
        pass
    return LoyaltyAccount.objects.select_for_update().get(user_id=user_id)


def _replay(entries: list[LoyaltyEntry]) -> dict[int, int]:
    """Replay a ledger in insertion order and return each lot's remaining points."""
    remaining: dict[int, int] = {}
    lots: list[LoyaltyEntry] = []

    for entry in entries:
        if entry.amount > 0:
            remaining[entry.pk] = entry.amount
            lots.append(entry)
        elif entry.reverses_id is not None:
            remaining[entry.reverses_id] = max(remaining.get(entry.reverses_id, 0) + entry.amount, 0)
        else:
            debit = -entry.amount
            for lot in sorted(lots, key=_consumption_order):
                if debit <= 0:
                    break
                take = min(remaining[lot.pk], debit)
                remaining[lot.pk] -= take
                debit -= take
    return remaining


def _consumption_order(lot: LoyaltyEntry) -> tuple[bool, datetime | None, int]:
    """Earliest-expiring lots are spent first; non-expiring lots last."""
    return (lot.expires_at is None, lot.expires_at, lot.pk)


def _expire_lots(account: LoyaltyAccount, now: datetime) -> int:
    """Append expiration entries for lapsed lots of a locked account."""
    entries = list(account.entries.order_by("pk"))
    remaining = _replay(entries)
    expired = 0
    for entry in entries:
        if entry.amount <= 0 or entry.expires_at is None or entry.expires_at > now:
            continue
        left = remaining.get(entry.pk, 0)
        if left <= 0:
            continue
        LoyaltyEntry.objects.create(
            account=account,
            amount=-left,
            reason=LoyaltyEntry.Reason.EXPIRATION,
            description=f"Points expired: {entry.description}"[:300],
            booking_id=entry.booking_id,
            reverses=entry,
            awarded_at=now,
        )
        expired += left
    if expired:
        account.balance -= expired
        account.save(update_fields=["balance", "updated_at"])
    return expired


def apply_tier_change(account: LoyaltyAccount, now: datetime) -> int:
    """Move the account to the tier its lifetime points earn, granting any upgrade bonus.

    Returns the bonus points granted (0 when the tier did not go up).
    """
    new_tier = tier_for_points(account.lifetime_points)
    old_benefits = get_tier_benefits(account.tier)
    new_benefits = get_tier_benefits(new_tier)
    account.tier = new_tier
    if new_benefits.threshold <= old_benefits.threshold or not new_benefits.upgrade_bonus:
        return 0

    LoyaltyEntry.objects.create(
        account=account,
        amount=new_benefits.upgrade_bonus,
        reason=LoyaltyEntry.Reason.TIER_BONUS,
        description=f"Tier upgrade bonus: Welcome to {account.get_tier_display()}!",
        awarded_at=now,
        expires_at=now + timedelta(days=get_config().loyalty.expiry_days),
    )
    account.balance += new_benefits.upgrade_bonus
    logger.info("Account %s upgraded to %s", account.user_id, new_tier)
    return new_benefits.upgrade_bonus
