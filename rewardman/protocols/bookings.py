"""Booking protocol for cross-app communication."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class BookingInfo:
    """Booking payload consumed at completion time."""

    booking_ref: str
    room_revenue: Decimal
    check_in: date | datetime
    check_out: date | datetime
    source: str
    property_id: str | None = None
    room_type_id: str | None = None
    add_on_revenue: Decimal = Decimal("0")
    is_prepaid: bool = False
    room_type_category: str | None = None
    confirmation_number: str = ""
    status: str = ""
    user_ref: str = ""


@runtime_checkable
class BookingBackend(Protocol):
    """
    Protocol for reading bookings owned by the booking system.

    Used by the points calculator (booking awards) and fraud heuristics.

    Configuration in settings.py:
        REWARDMAN = {
            "BOOKING_BACKEND": "myproject.bookings.adapters.RewardmanBookingBackend",
        }
    """

    def get_booking(self, booking_ref: str) -> BookingInfo | None:
        """
        Return a booking by reference.

        Args:
            booking_ref: Booking reference (id or confirmation number)

        Returns:
            BookingInfo or None if the booking does not exist
        """
        ...

    def count_recent_bookings(self, user_ref: str, since: datetime) -> int:
        """
        Count bookings created by a user since a point in time.

        Args:
            user_ref: External user identity of the loyalty account
            since: Lower bound (inclusive) on booking creation time

        Returns:
            Number of bookings
        """
        ...
