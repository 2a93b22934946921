"""Tests for program analytics."""

from datetime import timedelta

import pytest
from django.utils import timezone

from rewardman.models import Campaign, RedemptionItem, Tier
from rewardman.services.analytics import AnalyticsService
from rewardman.services.ledger import LedgerService
from rewardman.services.redemptions import RedemptionService


pytestmark = pytest.mark.django_db


@pytest.fixture
def activity(account, other_account):
    today = timezone.localdate()
    campaign = Campaign.objects.create(
        name="Launch",
        start_date=today - timedelta(days=7),
        end_date=today + timedelta(days=7),
    )
    LedgerService.award_points(account.pk, 1000, "Booking #1")
    LedgerService.award_points(other_account.pk, 500, "Launch bonus", campaign=campaign)
    item = RedemptionItem.objects.create(code="SPA", name="Spa", base_points_required=200)
    RedemptionService.process_redemption(item.pk, account.pk)
    return campaign


class TestAdvancedAnalytics:
    def test_program_statistics(self, account, other_account, activity):
        result = AnalyticsService.get_advanced_analytics()

        assert result["tier_distribution"] == [{"tier": Tier.MEMBER, "count": 2}]
        assert result["points_statistics"] == {"total": 1300, "average": 650, "max": 800, "min": 500}
        assert result["transaction_statistics"] == {"total_points": 1300, "total_transactions": 3}
        assert result["top_earners"] == [
            {"account_id": account.pk, "user_ref": "user-001", "tier": Tier.MEMBER, "points": 1000},
            {"account_id": other_account.pk, "user_ref": "user-002", "tier": Tier.MEMBER, "points": 500},
        ]
        assert result["redemption_statistics"] == {"total_points_redeemed": 200, "total_redemptions": 1}
        assert result["campaign_performance"] == [{"id": activity.pk, "name": "Launch", "entries": 1}]

    def test_period_filter(self, activity):
        future = timezone.now() + timedelta(days=1)
        result = AnalyticsService.get_advanced_analytics(start=future)

        assert result["transaction_statistics"] == {"total_points": 0, "total_transactions": 0}
        assert result["top_earners"] == []
        assert result["redemption_statistics"] == {"total_points_redeemed": 0, "total_redemptions": 0}
        assert result["points_statistics"]["total"] == 1300

    def test_empty_program(self, db):
        result = AnalyticsService.get_advanced_analytics()

        assert result["tier_distribution"] == []
        assert result["points_statistics"] == {"total": 0, "average": 0, "max": 0, "min": 0}
        assert result["top_earners"] == []
        assert result["campaign_performance"] == []
