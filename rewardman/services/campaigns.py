"""Campaign service — time-boxed promotions and their performance."""

from dataclasses import dataclass
from datetime import date, datetime

from django.db.models import Count, Sum
from django.utils import timezone

from rewardman.conditions import as_date
from rewardman.exceptions import RewardmanError
from rewardman.models import Campaign, LedgerEntry


@dataclass(frozen=True)
class CampaignContext:
    member_tier: str
    check_in: date | datetime
    property_id: str | None = None


def _live_on(day: date):
    return Campaign.objects.filter(
        is_active=True,
        start_date__lte=day,
        end_date__gte=day,
    ).order_by("-created_at", "-id")


class CampaignService:
    """
    Service for campaign queries.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def evaluate_campaign(cls, campaign: Campaign, context: CampaignContext) -> bool:
        """Whether a campaign applies to a member tier, property and check-in."""
        _, tier_scope, property_scope = campaign.parsed()
        day = as_date(context.check_in)
        if day is None or day < campaign.start_date or day > campaign.end_date:
            return False
        if not tier_scope.admits(context.member_tier):
            return False
        if not property_scope.admits(context.property_id):
            return False
        return True

    @classmethod
    def get_active_campaigns(
        cls,
        member_tier: str,
        property_id: str | None,
        check_in: date | datetime,
    ) -> list[Campaign]:
        """Active campaigns applying to a booking, newest first."""
        context = CampaignContext(member_tier=member_tier, property_id=property_id, check_in=check_in)
        return [
            campaign
            for campaign in _live_on(as_date(check_in))
            if cls.evaluate_campaign(campaign, context)
        ]

    @classmethod
    def get_member_campaigns(
        cls,
        member_tier: str,
        property_id: str | None = None,
        today: date | None = None,
    ) -> list[Campaign]:
        """
        Campaigns running today for a member tier.

        The property scope is only checked when property_id is given.
        """
        today = today or timezone.localdate()
        campaigns = []
        for campaign in _live_on(today):
            _, tier_scope, property_scope = campaign.parsed()
            if not tier_scope.admits(member_tier):
                continue
            if property_id is not None and not property_scope.admits(property_id):
                continue
            campaigns.append(campaign)
        return campaigns

    @classmethod
    def get_campaign_analytics(
        cls,
        campaign_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        """
        Ledger activity attributed to a campaign.

        Raises:
            RewardmanError: CAMPAIGN_NOT_FOUND
        """
        try:
            campaign = Campaign.objects.get(pk=campaign_id)
        except Campaign.DoesNotExist:
            raise RewardmanError("CAMPAIGN_NOT_FOUND", campaign_id=campaign_id)

        entries = LedgerEntry.objects.filter(campaign=campaign)
        if start:
            entries = entries.filter(created_at__gte=start)
        if end:
            entries = entries.filter(created_at__lte=end)

        totals = entries.aggregate(
            count=Count("id"),
            points=Sum("points"),
            members=Count("account", distinct=True),
        )
        return {
            "campaign": {
                "id": campaign.pk,
                "name": campaign.name,
                "campaign_type": campaign.campaign_type,
                "start_date": campaign.start_date,
                "end_date": campaign.end_date,
            },
            "analytics": {
                "total_entries": totals["count"],
                "total_points_awarded": totals["points"] or 0,
                "unique_members": totals["members"],
            },
        }
