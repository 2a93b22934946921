"""
Rewardman configuration.

Usage in settings.py:
    REWARDMAN = {
        "BOOKING_BACKEND": "myproject.loyalty.BookingAdapter",
        "OTA_SOURCES": ["OTA_BOOKING_COM", "OTA_MMT"],
        "FRAUD_LARGE_AWARD_POINTS": 100000,
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


def _default_ota_sources() -> list[str]:
    return [
        "OTA_BOOKING_COM",
        "OTA_MMT",
        "OTA_GOIBIBO",
        "OTA_YATRA",
        "OTA_AGODA",
    ]


@dataclass
class RewardmanSettings:
    """Rewardman configuration settings."""

    # Booking sources that never earn points
    OTA_SOURCES: list[str] = field(default_factory=_default_ota_sources)

    # Booking collaborator (dotted path to a BookingBackend implementation)
    BOOKING_BACKEND: str = ""

    # Member numbers are the account pk, zero-padded
    MEMBER_NUMBER_DIGITS: int = 6

    # Fraud heuristics
    FRAUD_LARGE_AWARD_POINTS: int = 100000
    FRAUD_RAPID_ACCUMULATION_POINTS: int = 50000
    FRAUD_RAPID_WINDOW_HOURS: int = 24
    FRAUD_MAX_RECENT_BOOKINGS: int = 10
    FRAUD_BOOKING_WINDOW_DAYS: int = 7

    # Member history listings
    DEFAULT_PAGE_SIZE: int = 50


def get_rewardman_settings() -> RewardmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "REWARDMAN", {})
    return RewardmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_rewardman_settings(), name)


rewardman_settings = _LazySettings()
