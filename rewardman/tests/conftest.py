"""Pytest fixtures for Rewardman tests."""

from datetime import date
from decimal import Decimal

import pytest

from rewardman.models import LoyaltyAccount, Tier, TierConfig
from rewardman.protocols import BookingInfo
from rewardman.tests.backends import FakeBookingBackend


# Tier ladder of the reference hotel program
TIER_SEED = [
    {
        "tier": Tier.MEMBER,
        "name": "Member",
        "sort_order": 0,
        "base_points_per_100": Decimal("5"),
    },
    {
        "tier": Tier.SILVER,
        "name": "Silver",
        "sort_order": 1,
        "min_points": 5000,
        "min_stays": 2,
        "min_nights": 5,
        "base_points_per_100": Decimal("7"),
    },
    {
        "tier": Tier.GOLD,
        "name": "Gold",
        "sort_order": 2,
        "min_points": 25000,
        "min_stays": 6,
        "min_nights": 15,
        "base_points_per_100": Decimal("10"),
    },
    {
        "tier": Tier.PLATINUM,
        "name": "Platinum",
        "sort_order": 3,
        "min_points": 75000,
        "min_stays": 12,
        "min_nights": 30,
        "base_points_per_100": Decimal("12"),
    },
    {
        "tier": Tier.DIAMOND,
        "name": "Diamond",
        "sort_order": 4,
        "min_points": 150000,
        "min_nights": 60,
        "min_spend": Decimal("150000"),
        "base_points_per_100": Decimal("15"),
    },
]


@pytest.fixture
def tier_configs(db):
    """Create the full MEMBER..DIAMOND tier ladder."""
    return {row["tier"]: TierConfig.objects.create(**row) for row in TIER_SEED}


@pytest.fixture
def member_only(db):
    """Create a MEMBER config earning 10 points per 100."""
    return TierConfig.objects.create(
        tier=Tier.MEMBER,
        name="Member",
        sort_order=0,
        base_points_per_100=Decimal("10"),
    )


@pytest.fixture
def account(db):
    """Create a zero-balance MEMBER account."""
    return LoyaltyAccount.objects.create(
        user_ref="user-001",
        member_number="000001",
        qualification_year_start=date(2025, 1, 1),
        qualification_year_end=date(2025, 12, 31),
    )


@pytest.fixture
def other_account(db):
    """Create a second zero-balance MEMBER account."""
    return LoyaltyAccount.objects.create(
        user_ref="user-002",
        member_number="000002",
        qualification_year_start=date(2025, 1, 1),
        qualification_year_end=date(2025, 12, 31),
    )


@pytest.fixture
def booking_backend():
    """Reset and return the in-memory booking backend."""
    FakeBookingBackend.reset()
    yield FakeBookingBackend
    FakeBookingBackend.reset()


@pytest.fixture
def booking():
    """A completed direct booking: 10000 revenue, two nights from a Tuesday."""
    return BookingInfo(
        booking_ref="BK-1001",
        room_revenue=Decimal("10000"),
        check_in=date(2025, 3, 4),
        check_out=date(2025, 3, 6),
        source="WEB_DIRECT",
        property_id="P1",
        room_type_id="DLX",
        confirmation_number="CNF-1001",
        status="COMPLETED",
        user_ref="user-001",
    )
