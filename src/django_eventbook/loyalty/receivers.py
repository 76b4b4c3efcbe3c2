"""Signal receivers that credit loyalty points when bookings are confirmed."""

import logging

from django.dispatch import receiver

from django_eventbook.bookings.models import Booking
from django_eventbook.bookings.signals import booking_confirmed
from django_eventbook.loyalty.services.ledger import LoyaltyService
from django_eventbook.loyalty.services.referral import ReferralService
from django_eventbook.pricing.models import Coupon

logger = logging.getLogger(__name__)


@receiver(booking_confirmed, sender=Booking, dispatch_uid="django_eventbook.loyalty.award_confirmed_booking")
def award_confirmed_booking(sender: type[Booking], booking: Booking, **kwargs: object) -> None:  # noqa: ARG001
    """Accrue points for a confirmed booking and reward its referrer, if any."""
    LoyaltyService.get_account(booking.user_id, email=booking.user_email)
    LoyaltyService.award_booking_points(
        booking.user_id,
        booking.reference,
        str(booking.event_id),
        booking.total_amount,
        booking.event_title,
    )

    if not booking.referred_by:
        return

    coupon = Coupon.objects.filter(code=booking.coupon_code).first() if booking.coupon_code else None
    result = ReferralService.award_referral_points(
        booking.referred_by,
        booking.user_id,
        booking.total_amount,
        booking_id=booking.reference,
        referee_discount=booking.referral_discount,
        coupon=coupon,
    )
    if not result.awarded:
        logger.info("No referral reward for booking %s: %s", booking.reference, result.message)
