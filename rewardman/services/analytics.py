"""Analytics service — program-wide loyalty statistics."""

from datetime import datetime

from django.db.models import Avg, Count, Max, Min, Sum

from rewardman.models import Campaign, LedgerEntry, LoyaltyAccount, RedemptionTransaction


class AnalyticsService:
    """
    Service for program analytics.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def get_advanced_analytics(cls, start: datetime | None = None, end: datetime | None = None) -> dict:
        """
        Program statistics.

        Tier distribution and balance statistics cover all accounts; ledger,
        top earner and redemption figures are limited to [start, end] when
        given.
        """
        entries = LedgerEntry.objects.all()
        redemptions = RedemptionTransaction.objects.all()
        if start:
            entries = entries.filter(created_at__gte=start)
            redemptions = redemptions.filter(redeemed_at__gte=start)
        if end:
            entries = entries.filter(created_at__lte=end)
            redemptions = redemptions.filter(redeemed_at__lte=end)

        tiers = (
            LoyaltyAccount.objects.values("tier")
            .annotate(count=Count("id"))
            .order_by("tier")
        )
        balances = LoyaltyAccount.objects.aggregate(
            total=Sum("points"),
            average=Avg("points"),
            max=Max("points"),
            min=Min("points"),
        )
        ledger = entries.aggregate(points=Sum("points"), count=Count("id"))

        earners = list(
            entries.filter(points__gt=0)
            .values("account")
            .annotate(points=Sum("points"))
            .order_by("-points", "account")[:10]
        )
        accounts = LoyaltyAccount.objects.in_bulk([e["account"] for e in earners])

        redeemed = redemptions.aggregate(points=Sum("points_redeemed"), count=Count("id"))

        campaigns = (
            Campaign.objects.filter(is_active=True)
            .annotate(entries=Count("ledger_entries"))
            .order_by("-created_at", "-id")
        )

        return {
            "tier_distribution": [{"tier": t["tier"], "count": t["count"]} for t in tiers],
            "points_statistics": {
                "total": balances["total"] or 0,
                "average": round(balances["average"] or 0),
                "max": balances["max"] or 0,
                "min": balances["min"] or 0,
            },
            "transaction_statistics": {
                "total_points": ledger["points"] or 0,
                "total_transactions": ledger["count"],
            },
            "top_earners": [
                {
                    "account_id": e["account"],
                    "user_ref": accounts[e["account"]].user_ref,
                    "tier": accounts[e["account"]].tier,
                    "points": e["points"],
                }
                for e in earners
            ],
            "redemption_statistics": {
                "total_points_redeemed": redeemed["points"] or 0,
                "total_redemptions": redeemed["count"],
            },
            "campaign_performance": [
                {"id": c.pk, "name": c.name, "entries": c.entries} for c in campaigns
            ],
        }
