"""Custom signals for the bookings app.

Signals:
    booking_confirmed: Sent when a booking transitions to CONFIRMED status.
        Sender: The ``Booking`` class.
        Kwargs:
            booking: The ``Booking`` instance that was confirmed.
    booking_modified: Sent after a modification is recorded.
        Sender: The ``Booking`` class.
        Kwargs:
            booking: The modified ``Booking``.
            modification: The new ``BookingModification`` record.
    booking_cancelled: Sent after a booking is cancelled.
        Sender: The ``Booking`` class.
        Kwargs:
            booking: The cancelled ``Booking``.
            cancellation: The ``BookingCancellation`` record with the refund.
"""

from django.dispatch import Signal

booking_confirmed = Signal()
booking_modified = Signal()
booking_cancelled = Signal()
