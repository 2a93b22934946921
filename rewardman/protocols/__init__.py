"""Rewardman protocols."""

from django.utils.module_loading import import_string

from rewardman.protocols.bookings import (
    BookingBackend,
    BookingInfo,
)


def get_booking_backend() -> BookingBackend | None:
    """Get configured BookingBackend, or None when not configured."""
    from rewardman.conf import rewardman_settings

    backend_path = rewardman_settings.BOOKING_BACKEND
    if backend_path:
        backend_class = import_string(backend_path)
        return backend_class()
    return None


__all__ = [
    "BookingBackend",
    "BookingInfo",
    "get_booking_backend",
]
